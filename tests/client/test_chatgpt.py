import httpx
import pytest
import respx

from ratewatch.client.chatgpt import (
    CHATGPT_BASE_URL,
    USAGE_PATH,
    ChatGPTRateLimitClient,
    parse_usage_payload,
)
from ratewatch.errors import RateLimitFetchError
from ratewatch.models import CreditBalance, RateLimitWindow

USAGE_URL = f"{CHATGPT_BASE_URL}{USAGE_PATH}"

USAGE_BODY = {
    "plan_type": "plus",
    "rate_limit": {
        "allowed": True,
        "limit_reached": False,
        "primary_window": {
            "used_percent": 17,
            "limit_window_seconds": 18000,
            "reset_after_seconds": 3600,
            "reset_at": 1760003600,
        },
        "secondary_window": {
            "used_percent": 42.5,
            "limit_window_seconds": 604800,
            "reset_at": 1760500000,
        },
    },
    "credits": {"has_credits": True, "unlimited": False, "balance": "9.50"},
}


class TestParseUsagePayload:
    def test_maps_windows_and_credits(self) -> "None":
        snapshot = parse_usage_payload(USAGE_BODY, now=1760000000)
        assert snapshot.primary == RateLimitWindow(17.0, 300, 1760003600)
        assert snapshot.secondary == RateLimitWindow(42.5, 10080, 1760500000)
        assert snapshot.credits == CreditBalance(True, False, "9.50")

    def test_reset_after_seconds_is_relative_to_now(self) -> "None":
        snapshot = parse_usage_payload(
            {
                "rate_limit": {
                    "primary_window": {"used_percent": 1, "reset_after_seconds": 60}
                }
            },
            now=1000,
        )
        assert snapshot.primary == RateLimitWindow(1.0, None, 1060)
        assert snapshot.secondary is None

    def test_missing_rate_limit(self) -> "None":
        snapshot = parse_usage_payload({"plan_type": "free"}, now=0)
        assert snapshot.primary is None
        assert snapshot.secondary is None
        assert snapshot.credits is None

    def test_rejects_non_object(self) -> "None":
        with pytest.raises(TypeError):
            parse_usage_payload(["nope"], now=0)

    def test_rejects_non_finite_used_percent(self) -> "None":
        with pytest.raises(ValueError):
            parse_usage_payload(
                {"rate_limit": {"primary_window": {"used_percent": float("nan")}}},
                now=0,
            )

    def test_rejects_non_numeric_reset(self) -> "None":
        with pytest.raises(TypeError):
            parse_usage_payload(
                {
                    "rate_limit": {
                        "primary_window": {"used_percent": 1, "reset_at": "soon"}
                    }
                },
                now=0,
            )


class TestChatGPTRateLimitClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_rate_limits(self) -> "None":
        route = respx.get(USAGE_URL).mock(
            return_value=httpx.Response(200, json=USAGE_BODY)
        )

        client = ChatGPTRateLimitClient(access_token="at-123", account_id="acct-1")
        try:
            snapshot = await client.fetch_rate_limits()
        finally:
            await client.close()

        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer at-123"
        assert request.headers["ChatGPT-Account-Id"] == "acct-1"
        assert snapshot.primary is not None
        assert snapshot.primary.window_minutes == 300

    @pytest.mark.asyncio
    @respx.mock
    async def test_custom_base_url(self) -> "None":
        route = respx.get("https://example.test/api/wham/usage").mock(
            return_value=httpx.Response(200, json={})
        )

        client = ChatGPTRateLimitClient(
            access_token="at", base_url="https://example.test/api/"
        )
        try:
            await client.fetch_rate_limits()
        finally:
            await client.close()

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_success_status_raises(self) -> "None":
        route = respx.get(USAGE_URL).mock(return_value=httpx.Response(401))

        client = ChatGPTRateLimitClient(access_token="expired")
        with pytest.raises(RateLimitFetchError, match="401"):
            await client.fetch_rate_limits()
        await client.close()

        # exactly one attempt, no retries
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_raises(self) -> "None":
        respx.get(USAGE_URL).mock(side_effect=httpx.ConnectError("offline"))

        client = ChatGPTRateLimitClient(access_token="at")
        with pytest.raises(RateLimitFetchError):
            await client.fetch_rate_limits()
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises(self) -> "None":
        respx.get(USAGE_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        client = ChatGPTRateLimitClient(access_token="at")
        with pytest.raises(RateLimitFetchError):
            await client.fetch_rate_limits()
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_undecodable_body_raises(self) -> "None":
        respx.get(USAGE_URL).mock(
            return_value=httpx.Response(200, content=b"<html>maintenance</html>")
        )

        client = ChatGPTRateLimitClient(access_token="at")
        with pytest.raises(RateLimitFetchError):
            await client.fetch_rate_limits()
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_shape_raises(self) -> "None":
        respx.get(USAGE_URL).mock(
            return_value=httpx.Response(
                200,
                json={"rate_limit": {"primary_window": {"used_percent": "lots"}}},
            )
        )

        client = ChatGPTRateLimitClient(access_token="at")
        with pytest.raises(RateLimitFetchError):
            await client.fetch_rate_limits()
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_nan_in_body_raises(self) -> "None":
        respx.get(USAGE_URL).mock(
            return_value=httpx.Response(
                200,
                content=b'{"rate_limit":{"primary_window":{"used_percent":NaN}}}',
            )
        )

        client = ChatGPTRateLimitClient(access_token="at")
        with pytest.raises(RateLimitFetchError):
            await client.fetch_rate_limits()
        await client.close()

    def test_name(self) -> "None":
        assert ChatGPTRateLimitClient(access_token="at").name == "chatgpt"
