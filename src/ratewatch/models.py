import enum
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

# cached input is re-used context and is not counted
# towards the blended total
CACHED_INPUT_WEIGHT = 0


def _count(data: "dict[str, Any]", key: "str") -> "int":
    """
    reads a non-negative integer token count, defaulting to 0
    when the key is absent or null.
    """
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{key} must be non-negative, got {value}")
    return value


def _optional_int(data: "dict[str, Any]", key: "str") -> "int | None":
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite, got {value}")
    return int(value)


def _flag(data: "dict[str, Any]", key: "str") -> "bool":
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


def _mapping(value: "Any", key: "str") -> "dict[str, Any] | None":
    if value is None:
        return None
    if not isinstance(value, dict):
        raise TypeError(f"{key} must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """
    TokenUsage is the cumulative token usage of a session as
    last reported in its event log.
    """

    input_tokens: "int" = 0
    cached_input_tokens: "int" = 0
    output_tokens: "int" = 0
    # reasoning tokens are a subset of output_tokens
    reasoning_output_tokens: "int" = 0
    total_tokens: "int" = 0

    @classmethod
    def from_dict(cls, data: "Any") -> "TokenUsage":
        data = _mapping(data, "total_token_usage")
        if data is None:
            raise TypeError("total_token_usage must be an object")
        return cls(
            input_tokens=_count(data, "input_tokens"),
            cached_input_tokens=_count(data, "cached_input_tokens"),
            output_tokens=_count(data, "output_tokens"),
            reasoning_output_tokens=_count(data, "reasoning_output_tokens"),
            total_tokens=_count(data, "total_tokens"),
        )

    @property
    def cached_input(self) -> "int":
        return max(0, self.cached_input_tokens)

    @property
    def non_cached_input(self) -> "int":
        return max(0, self.input_tokens - self.cached_input_tokens)

    @property
    def blended_total(self) -> "int":
        """
        non-cached input plus output, with cached input weighted by
        CACHED_INPUT_WEIGHT.
        """
        return (
            self.non_cached_input
            + self.cached_input * CACHED_INPUT_WEIGHT
            + max(0, self.output_tokens)
        )


@dataclass(frozen=True, slots=True)
class RateLimitWindow:
    """
    RateLimitWindow is one rolling quota period.
    """

    used_percent: "float"
    window_minutes: "int | None" = None
    # unix timestamp of the next reset
    resets_at: "int | None" = None

    @classmethod
    def from_dict(cls, data: "Any") -> "RateLimitWindow":
        data = _mapping(data, "window")
        if data is None:
            raise TypeError("window must be an object")
        used = data.get("used_percent")
        if isinstance(used, bool) or not isinstance(used, (int, float)):
            raise TypeError("used_percent must be a number")
        if not math.isfinite(used):
            raise ValueError(f"used_percent must be finite, got {used}")
        return cls(
            used_percent=float(used),
            window_minutes=_optional_int(data, "window_minutes"),
            resets_at=_optional_int(data, "resets_at"),
        )

    @property
    def percent_left(self) -> "float":
        return 100.0 - self.used_percent


@dataclass(frozen=True, slots=True)
class CreditBalance:
    has_credits: "bool" = False
    unlimited: "bool" = False
    balance: "str | None" = None

    @classmethod
    def from_dict(cls, data: "Any") -> "CreditBalance":
        data = _mapping(data, "credits")
        if data is None:
            raise TypeError("credits must be an object")
        balance = data.get("balance")
        if balance is not None and not isinstance(balance, str):
            raise TypeError("balance must be a string")
        return cls(
            has_credits=_flag(data, "has_credits"),
            unlimited=_flag(data, "unlimited"),
            balance=balance,
        )


@dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """
    RateLimitSnapshot holds the short (primary) and long (secondary)
    quota windows plus the optional purchased credit balance. Snapshots
    from the live endpoint and from session logs share this shape.
    """

    primary: "RateLimitWindow | None" = None
    secondary: "RateLimitWindow | None" = None
    credits: "CreditBalance | None" = None

    @classmethod
    def from_dict(cls, data: "Any") -> "RateLimitSnapshot":
        data = _mapping(data, "rate_limits")
        if data is None:
            raise TypeError("rate_limits must be an object")
        primary = data.get("primary")
        secondary = data.get("secondary")
        credits = data.get("credits")
        return cls(
            primary=RateLimitWindow.from_dict(primary) if primary is not None else None,
            secondary=(
                RateLimitWindow.from_dict(secondary) if secondary is not None else None
            ),
            credits=CreditBalance.from_dict(credits) if credits is not None else None,
        )


class SnapshotSource(enum.Enum):
    LIVE = "live"
    SESSION_LOG = "session_log"


@dataclass(frozen=True, slots=True)
class SourcedRateLimits:
    """
    SourcedRateLimits tags a snapshot with where it came from.
    """

    snapshot: "RateLimitSnapshot"
    source: "SnapshotSource"


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    SessionRecord points at one recorded session and its event log.
    """

    id: "str"
    path: "str"
    created_at: "datetime | None" = None
    updated_at: "datetime | None" = None
    source: "str | None" = None
    model_provider: "str | None" = None
