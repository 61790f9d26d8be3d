import asyncio
import json
from dataclasses import dataclass

import structlog

from ratewatch.errors import SessionLogReadError
from ratewatch.models import RateLimitSnapshot, TokenUsage

logger = structlog.get_logger()

EVENT_MSG_TYPE = "event_msg"
TOKEN_COUNT_TYPE = "token_count"


@dataclass(frozen=True, slots=True)
class LineFacts:
    """
    LineFacts holds whatever a single log line said about usage
    and rate limits. Either field may be missing independently.
    """

    usage: "TokenUsage | None" = None
    rate_limits: "RateLimitSnapshot | None" = None


@dataclass(frozen=True, slots=True)
class SessionLogFacts:
    """
    SessionLogFacts is the freshest usage and rate-limit state
    found in a whole session log.
    """

    usage: "TokenUsage | None" = None
    rate_limits: "RateLimitSnapshot | None" = None


_NO_FACTS = LineFacts()


def extract_line(line: "str") -> "LineFacts":
    """
    parses one event log line. Anything other than a well-formed
    token_count event message yields no facts; a bad usage or
    rate_limits object only drops that half of the event.
    """
    try:
        record = json.loads(line)
    except (ValueError, RecursionError):
        # RecursionError: nesting deeper than the decoder can follow
        return _NO_FACTS

    if not isinstance(record, dict) or record.get("type") != EVENT_MSG_TYPE:
        return _NO_FACTS

    payload = record.get("payload")
    if not isinstance(payload, dict) or payload.get("type") != TOKEN_COUNT_TYPE:
        return _NO_FACTS

    usage: "TokenUsage | None" = None
    info = payload.get("info")
    if isinstance(info, dict) and info.get("total_token_usage") is not None:
        try:
            usage = TokenUsage.from_dict(info["total_token_usage"])
        except (TypeError, ValueError):
            usage = None

    rate_limits: "RateLimitSnapshot | None" = None
    if payload.get("rate_limits") is not None:
        try:
            rate_limits = RateLimitSnapshot.from_dict(payload["rate_limits"])
        except (TypeError, ValueError):
            rate_limits = None

    if usage is None and rate_limits is None:
        return _NO_FACTS
    return LineFacts(usage=usage, rate_limits=rate_limits)


def scan_session_log(path: "str") -> "SessionLogFacts":
    """
    streams the log at path line by line and keeps the last usage and
    the last rate-limit snapshot seen. The log is append-only, so the
    scan always runs to EOF; a line still being written by another
    process is treated like any other malformed line.
    """
    usage: "TokenUsage | None" = None
    rate_limits: "RateLimitSnapshot | None" = None
    line_count = 0

    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                line_count += 1
                facts = extract_line(line)
                if facts.usage is not None:
                    usage = facts.usage
                if facts.rate_limits is not None:
                    rate_limits = facts.rate_limits
    except OSError as e:
        raise SessionLogReadError(path, e) from e

    logger.debug(
        "session_log_scanned",
        path=path,
        lines=line_count,
        has_usage=usage is not None,
        has_rate_limits=rate_limits is not None,
    )
    return SessionLogFacts(usage=usage, rate_limits=rate_limits)


async def scan_session_log_async(path: "str") -> "SessionLogFacts":
    """
    runs scan_session_log in a worker thread so the event loop
    is not blocked on file I/O.
    """
    return await asyncio.to_thread(scan_session_log, path)
