"""
Plain-text rendering of a StatusReport.

Everything here is pure: the current instant, the local timezone and
the home directory are passed in rather than looked up, so output is
stable under test. A tz of None means the system local zone.

Rate-limit bars fill in proportion to the percentage *used*; the number
printed beside the bar is the percentage *left*. A reset time already
in the past renders as "recently".
"""

import os
from datetime import datetime, tzinfo
from pathlib import PurePath
from typing import Sequence

from ratewatch.models import (
    CreditBalance,
    RateLimitSnapshot,
    RateLimitWindow,
    SnapshotSource,
    SourcedRateLimits,
    TokenUsage,
)
from ratewatch.report import AuthStatus, StatusReport, UsageState

BAR_WIDTH = 30
BAR_FILLED = "█"
BAR_EMPTY = "░"

DEFAULT_PRIMARY_LABEL = "5h"
DEFAULT_SECONDARY_LABEL = "Weekly"
UNAVAILABLE = "data not available yet"

_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_AUTH_LABELS: "dict[AuthStatus, str]" = {
    AuthStatus.CHATGPT: "Logged in (ChatGPT)",
    AuthStatus.API_KEY: "Logged in (API key)",
    AuthStatus.NOT_LOGGED_IN: "Not logged in",
    AuthStatus.UNKNOWN: "Unknown (could not read credentials)",
}

_SOURCE_LABELS: "dict[SnapshotSource, str]" = {
    SnapshotSource.LIVE: "live",
    SnapshotSource.SESSION_LOG: "last session log",
}

# a row is (label, value); a group is printed as a block of rows
Row = tuple[str, str]


def format_tokens(count: "int") -> "str":
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}k"
    return str(count)


def format_duration_label(minutes: "int") -> "str":
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 1440:
        return f"{minutes // 60}h"
    if minutes < 10080:
        return f"{minutes // 1440}d"
    return "Weekly"


def bar_fill(used_percent: "float", width: "int" = BAR_WIDTH) -> "int":
    """
    number of filled cells, rounded half up and kept within [0, width].
    """
    fraction = min(max(used_percent / 100.0, 0.0), 1.0)
    return min(int(fraction * width + 0.5), width)


def render_bar(used_percent: "float", width: "int" = BAR_WIDTH) -> "str":
    filled = bar_fill(used_percent, width)
    empty = max(width - filled, 0)
    return BAR_FILLED * filled + BAR_EMPTY * empty


def format_reset_time(
    resets_at: "int",
    now: "datetime",
    tz: "tzinfo | None",
) -> "str":
    if resets_at < now.timestamp():
        return "recently"

    reset_local = datetime.fromtimestamp(resets_at, tz)
    now_local = now.astimezone(tz)
    clock = f"{reset_local.hour:02d}:{reset_local.minute:02d}"
    if reset_local.date() == now_local.date():
        return clock
    return f"{clock} on {reset_local.day} {_MONTHS[reset_local.month - 1]}"


def display_directory(cwd: "str", home: "str") -> "str":
    try:
        relative = PurePath(cwd).relative_to(PurePath(home))
    except ValueError:
        return cwd
    if relative == PurePath("."):
        return "~"
    return os.path.join("~", str(relative))


def align_rows(rows: "Sequence[Row]", width: "int") -> "list[str]":
    """
    pads each "label:" to width + 1 so values start in one column.
    """
    return [f"{label + ':':<{width + 1}} {value}" for label, value in rows]


def _window_value(
    window: "RateLimitWindow",
    now: "datetime",
    tz: "tzinfo | None",
) -> "str":
    left = min(max(window.percent_left, 0.0), 100.0)
    value = f"[{render_bar(window.used_percent)}] {left:.0f}% left"
    if window.resets_at is not None:
        try:
            reset = format_reset_time(window.resets_at, now, tz)
        except (OverflowError, OSError, ValueError):
            # timestamp outside what the platform clock can represent
            return value
        value += f" (resets {reset})"
    return value


def _window_label(window: "RateLimitWindow", default: "str") -> "str":
    if window.window_minutes is None:
        return f"{default} limit"
    return f"{format_duration_label(window.window_minutes)} limit"


def _credit_rows(credits: "CreditBalance | None") -> "list[Row]":
    if credits is None or not credits.has_credits:
        return []
    if credits.unlimited:
        return [("Credits", "Unlimited")]
    if credits.balance is not None:
        return [("Credits", credits.balance)]
    return []


def _usage_rows(usage: "TokenUsage") -> "list[Row]":
    rows: "list[Row]" = [
        ("Total tokens", format_tokens(usage.blended_total)),
        ("Input tokens", format_tokens(usage.non_cached_input)),
    ]
    if usage.cached_input > 0:
        rows.append(("Cached input", format_tokens(usage.cached_input)))
    rows.append(("Output tokens", format_tokens(usage.output_tokens)))
    if usage.reasoning_output_tokens > 0:
        rows.append(("Reasoning tokens", format_tokens(usage.reasoning_output_tokens)))
    return rows


def _config_rows(report: "StatusReport", home: "str") -> "list[Row]":
    rows: "list[Row]" = [("Model", report.model or "<default>")]
    if report.show_model_provider:
        rows.append(("Model provider", report.model_provider_name))
    rows.extend(
        [
            ("Directory", display_directory(report.cwd, home)),
            ("Approval", report.approval_policy),
            ("Sandbox", report.sandbox),
            ("Account", _AUTH_LABELS[report.auth_status]),
        ]
    )
    return rows


def _session_rows(report: "StatusReport", tz: "tzinfo | None") -> "list[Row]":
    session = report.session
    if session is None:
        return [
            ("Session", "No recent sessions found"),
            ("Token usage", "N/A"),
        ]

    rows: "list[Row]" = [("Session", session.id)]
    if session.created_at is not None:
        rows.append(("Started", f"{session.created_at.astimezone(tz):%Y-%m-%d %H:%M}"))

    if report.usage_state is UsageState.AVAILABLE and report.usage is not None:
        rows.extend(_usage_rows(report.usage))
    elif report.usage_state is UsageState.READ_ERROR:
        rows.append(("Token usage", "(error reading session log)"))
    else:
        rows.append(("Token usage", "No data available"))
    return rows


def _quota_rows(
    rate_limits: "SourcedRateLimits | None",
    now: "datetime",
    tz: "tzinfo | None",
) -> "list[Row]":
    if rate_limits is None:
        return [
            (f"{DEFAULT_PRIMARY_LABEL} limit", UNAVAILABLE),
            (f"{DEFAULT_SECONDARY_LABEL} limit", UNAVAILABLE),
        ]

    snapshot: "RateLimitSnapshot" = rate_limits.snapshot
    rows: "list[Row]" = []
    if snapshot.primary is not None:
        rows.append(
            (
                _window_label(snapshot.primary, DEFAULT_PRIMARY_LABEL),
                _window_value(snapshot.primary, now, tz),
            )
        )
    if snapshot.secondary is not None:
        rows.append(
            (
                _window_label(snapshot.secondary, DEFAULT_SECONDARY_LABEL),
                _window_value(snapshot.secondary, now, tz),
            )
        )
    rows.extend(_credit_rows(snapshot.credits))
    rows.append(("Limits source", _SOURCE_LABELS[rate_limits.source]))
    return rows


def render_report(
    report: "StatusReport",
    now: "datetime",
    tz: "tzinfo | None",
    home: "str",
) -> "str":
    """
    renders the report as three blank-line separated groups
    (configuration, session, quota) with a single label column
    sized to the longest label actually printed.
    """
    groups = [
        _config_rows(report, home),
        _session_rows(report, tz),
        _quota_rows(report.rate_limits, now, tz),
    ]
    width = max(len(label) for group in groups for label, _ in group)
    blocks = ["\n".join(align_rows(group, width)) for group in groups if group]
    return "\n\n".join(blocks) + "\n"
