import enum
from dataclasses import dataclass
from typing import Callable

import structlog

from ratewatch.auth import AuthCredentials, AuthMode, load_auth
from ratewatch.client.base import RateLimitClient
from ratewatch.client.chatgpt import ChatGPTRateLimitClient
from ratewatch.config import Config
from ratewatch.discovery import (
    INTERACTIVE_SESSION_SOURCES,
    SessionDiscovery,
    SessionSortKey,
)
from ratewatch.errors import (
    AuthError,
    RateLimitFetchError,
    SessionDiscoveryError,
    SessionLogReadError,
)
from ratewatch.models import (
    RateLimitSnapshot,
    SessionRecord,
    SnapshotSource,
    SourcedRateLimits,
    TokenUsage,
)
from ratewatch.session_log import SessionLogFacts, scan_session_log_async

logger = structlog.get_logger()

ClientFactory = Callable[[AuthCredentials, Config], RateLimitClient | None]


class AuthStatus(enum.Enum):
    NOT_LOGGED_IN = "not_logged_in"
    API_KEY = "api_key"
    CHATGPT = "chatgpt"
    UNKNOWN = "unknown"


class UsageState(enum.Enum):
    # no session to read usage from
    NO_SESSION = "no_session"
    # session log read fine but held no token counts
    NO_DATA = "no_data"
    # session log could not be read
    READ_ERROR = "read_error"
    AVAILABLE = "available"


@dataclass(frozen=True, slots=True)
class StatusReport:
    """
    StatusReport is everything the renderer needs, already
    resolved. It never says how each part was obtained beyond
    the provenance tag on the rate limits.
    """

    model: "str | None"
    model_provider_name: "str"
    show_model_provider: "bool"
    cwd: "str"
    approval_policy: "str"
    sandbox: "str"
    auth_status: "AuthStatus"
    session: "SessionRecord | None"
    usage_state: "UsageState"
    usage: "TokenUsage | None"
    rate_limits: "SourcedRateLimits | None"


def resolve_rate_limits(
    live: "RateLimitSnapshot | None",
    from_log: "RateLimitSnapshot | None",
) -> "SourcedRateLimits | None":
    """
    picks the snapshot to report: a live one always wins, the
    session log is the fallback, and None means nothing is known yet.
    """
    if live is not None:
        return SourcedRateLimits(snapshot=live, source=SnapshotSource.LIVE)
    if from_log is not None:
        return SourcedRateLimits(snapshot=from_log, source=SnapshotSource.SESSION_LOG)
    return None


def default_client_factory(
    credentials: "AuthCredentials",
    config: "Config",
) -> "RateLimitClient | None":
    """
    returns a live client for ChatGPT logins, None otherwise.
    """
    if not credentials.can_fetch_rate_limits:
        return None
    return ChatGPTRateLimitClient(
        access_token=credentials.access_token,
        account_id=credentials.account_id,
        base_url=config.chatgpt_base_url,
    )


class StatusReportBuilder:
    """
    StatusReportBuilder gathers the status report in one sequential
    pass: find the latest session, try one live rate-limit fetch, then
    read the session log for usage and as the rate-limit fallback.
    Every collaborator failure degrades the report instead of
    failing it.
    """

    def __init__(
        self,
        config: "Config",
        discovery: "SessionDiscovery",
        client_factory: "ClientFactory" = default_client_factory,
    ) -> "None":
        self._config = config
        self._discovery = discovery
        self._client_factory = client_factory

    async def build(self) -> "StatusReport":
        credentials, auth_status = self._load_credentials()
        session = await self._latest_session()

        live: "RateLimitSnapshot | None" = None
        if session is not None and credentials is not None and self._config.live_fetch:
            live = await self._fetch_live(credentials)

        usage_state = UsageState.NO_SESSION
        facts = SessionLogFacts()
        if session is not None:
            try:
                facts = await scan_session_log_async(session.path)
            except SessionLogReadError as e:
                logger.warning(
                    "session_log_read_failed",
                    path=e.path,
                    error=str(e.cause),
                )
                usage_state = UsageState.READ_ERROR
            else:
                usage_state = (
                    UsageState.AVAILABLE if facts.usage is not None else UsageState.NO_DATA
                )

        rate_limits = resolve_rate_limits(live, facts.rate_limits)
        logger.info(
            "status_report_built",
            session_id=session.id if session else None,
            usage_state=usage_state.value,
            rate_limit_source=rate_limits.source.value if rate_limits else None,
        )

        return StatusReport(
            model=self._config.model,
            model_provider_name=self._config.provider_display_name,
            show_model_provider=not self._config.is_default_provider,
            cwd=self._config.cwd,
            approval_policy=self._config.approval_policy,
            sandbox=self._config.sandbox_display,
            auth_status=auth_status,
            session=session,
            usage_state=usage_state,
            usage=facts.usage,
            rate_limits=rate_limits,
        )

    def _load_credentials(self) -> "tuple[AuthCredentials | None, AuthStatus]":
        try:
            credentials = load_auth(self._config.codex_home)
        except AuthError as e:
            logger.warning("auth_load_failed", error=str(e))
            return None, AuthStatus.UNKNOWN

        if credentials is None:
            return None, AuthStatus.NOT_LOGGED_IN
        if credentials.mode is AuthMode.CHATGPT:
            return credentials, AuthStatus.CHATGPT
        return credentials, AuthStatus.API_KEY

    async def _latest_session(self) -> "SessionRecord | None":
        provider_id = self._config.model_provider_id
        try:
            sessions = await self._discovery.list_sessions(
                self._config.codex_home,
                1,
                SessionSortKey.UPDATED_AT,
                INTERACTIVE_SESSION_SOURCES,
                [provider_id],
                provider_id,
            )
        except SessionDiscoveryError as e:
            logger.warning("session_discovery_failed", error=str(e))
            return None

        return sessions[0] if sessions else None

    async def _fetch_live(
        self,
        credentials: "AuthCredentials",
    ) -> "RateLimitSnapshot | None":
        client = self._client_factory(credentials, self._config)
        if client is None:
            logger.debug("live_fetch_skipped", auth_mode=credentials.mode.value)
            return None

        try:
            return await client.fetch_rate_limits()
        except RateLimitFetchError as e:
            logger.info("live_fetch_failed", client=client.name, error=str(e))
            return None
        finally:
            await client.close()
