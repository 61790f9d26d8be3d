import math
import time
from typing import Any

import httpx
import structlog

from ratewatch.errors import RateLimitFetchError
from ratewatch.models import CreditBalance, RateLimitSnapshot, RateLimitWindow

logger = structlog.get_logger()

CHATGPT_BASE_URL = "https://chatgpt.com/backend-api"
USAGE_PATH = "/wham/usage"


def _number(data: "dict[str, Any]", key: "str") -> "float | None":
    """
    reads an optional finite number; NaN and Infinity are rejected.
    """
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite, got {value}")
    return value


def _parse_window(
    data: "Any",
    now: "int",
) -> "RateLimitWindow | None":
    """
    converts a usage-endpoint window into a RateLimitWindow. The
    endpoint reports window length in seconds and may give the reset
    either as an absolute timestamp or as seconds from now.
    """
    if data is None:
        return None
    if not isinstance(data, dict):
        raise TypeError("rate limit window must be an object")

    used = _number(data, "used_percent")
    if used is None:
        raise TypeError("used_percent must be a number")

    window_minutes: "int | None" = None
    window_seconds = _number(data, "limit_window_seconds")
    if window_seconds is not None and window_seconds > 0:
        # round up so a 299.5 minute window still reads as 5h
        window_minutes = int(-(-window_seconds // 60))

    resets_at: "int | None" = None
    reset_at = _number(data, "reset_at")
    reset_after = _number(data, "reset_after_seconds")
    if reset_at is not None:
        resets_at = int(reset_at)
    elif reset_after is not None:
        resets_at = now + int(reset_after)

    return RateLimitWindow(
        used_percent=float(used),
        window_minutes=window_minutes,
        resets_at=resets_at,
    )


def parse_usage_payload(data: "Any", now: "int") -> "RateLimitSnapshot":
    """
    maps the usage endpoint body onto a RateLimitSnapshot.
    """
    if not isinstance(data, dict):
        raise TypeError("usage response must be an object")

    rate_limit = data.get("rate_limit") or {}
    if not isinstance(rate_limit, dict):
        raise TypeError("rate_limit must be an object")

    credits: "CreditBalance | None" = None
    credits_data = data.get("credits")
    if credits_data is not None:
        credits = CreditBalance.from_dict(credits_data)

    return RateLimitSnapshot(
        primary=_parse_window(rate_limit.get("primary_window"), now),
        secondary=_parse_window(rate_limit.get("secondary_window"), now),
        credits=credits,
    )


class ChatGPTRateLimitClient:
    """
    ChatGPTRateLimitClient implements the RateLimitClient protocol
    against the ChatGPT backend usage endpoint, authenticated with the
    access token stored by the ChatGPT login flow.
    """

    def __init__(
        self,
        access_token: "str",
        account_id: "str" = "",
        base_url: "str" = CHATGPT_BASE_URL,
        timeout: "float" = 10.0,
    ) -> "None":
        self._base_url = base_url.rstrip("/")
        headers: "dict[str, str]" = {
            "Authorization": f"Bearer {access_token}",
            "User-Agent": "ratewatch",
        }
        if account_id:
            headers["ChatGPT-Account-Id"] = account_id
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
        )

    @property
    def name(self) -> "str":
        return "chatgpt"

    @property
    def url(self) -> "str":
        return f"{self._base_url}{USAGE_PATH}"

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    async def fetch_rate_limits(self) -> "RateLimitSnapshot":
        """
        performs one request for the current rate-limit snapshot.
        Timeouts, transport errors, non-2xx responses and
        undecodable bodies all surface as RateLimitFetchError.
        """
        logger.debug("chatgpt_fetch_rate_limits", url=self.url)
        try:
            resp = await self._client.get(self.url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise RateLimitFetchError(
                f"usage endpoint returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RateLimitFetchError(f"usage request failed: {e}") from e
        except (ValueError, RecursionError) as e:
            raise RateLimitFetchError(f"usage response is not JSON: {e}") from e

        try:
            snapshot = parse_usage_payload(data, int(time.time()))
        except (TypeError, ValueError) as e:
            raise RateLimitFetchError(f"unexpected usage response: {e}") from e

        logger.debug(
            "chatgpt_rate_limits_fetched",
            plan_type=data.get("plan_type"),
            has_primary=snapshot.primary is not None,
            has_secondary=snapshot.secondary is not None,
        )
        return snapshot
