"""
human-facing aggregates computed on demand from the latest snapshots.

Every function here is pure: "now" is taken as an argument (defaulting to
the current UTC time) and missing counters count as zero.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from usagesync.models import HistoricalStats, RateLimitWindow, parse_iso_timestamp

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True, slots=True)
class StatsSummary:
    """
    StatsSummary is the "all time" block shown next to the windows.
    """

    messages: "int"
    sessions: "int"
    tool_calls: "int"
    tokens: "int"
    days_active: "int"
    peak_hour: "str"


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


def total_messages(stats: "HistoricalStats") -> "int":
    return stats.total_messages or 0


def total_sessions(stats: "HistoricalStats") -> "int":
    return stats.total_sessions or 0


def total_tool_calls(stats: "HistoricalStats") -> "int":
    return sum(day.tool_call_count or 0 for day in stats.daily_activity)


def total_tokens(stats: "HistoricalStats") -> "int":
    """
    input plus output tokens across all models. Cache reads and
    writes are not counted.
    """
    return sum(
        (usage.input_tokens or 0) + (usage.output_tokens or 0)
        for usage in stats.model_usage.values()
    )


def format_hour(hour: "int") -> "str":
    """
    formats 0-23 as a 12-hour clock label: 0 -> "12am", 14 -> "2pm".
    """
    suffix = "am" if hour < 12 else "pm"
    return f"{hour % 12 or 12}{suffix}"


def most_active_hour(stats: "HistoricalStats") -> "str":
    """
    returns the hour with the highest count. When several hours share
    the maximum, any one of them may be returned.
    """
    if not stats.hour_counts:
        return NOT_AVAILABLE

    label, _ = max(stats.hour_counts.items(), key=lambda item: item[1])
    try:
        hour = int(label)
    except ValueError:
        return NOT_AVAILABLE

    if not 0 <= hour <= 23:
        return NOT_AVAILABLE
    return format_hour(hour)


def days_since_first_session(
    stats: "HistoricalStats",
    now: "datetime | None" = None,
) -> "int":
    """
    whole days between the first recorded session and now. 0 when the
    date is missing, unparseable or in the future.
    """
    if not stats.first_session_date:
        return 0

    first = parse_iso_timestamp(stats.first_session_date)
    if first is None:
        return 0

    delta = (now or _utcnow()) - first
    return max(0, delta.days)


def time_until_reset(
    window: "RateLimitWindow",
    now: "datetime | None" = None,
) -> "str":
    """
    countdown to the window reset using the two coarsest units:
    "1d 2h", "3h 5m" or "30m". "now" once the reset is not strictly
    in the future, "" when the window carries no reset instant.
    """
    if window.resets_at is None:
        return ""

    seconds = (window.resets_at - (now or _utcnow())).total_seconds()
    if seconds <= 0:
        return "now"

    remaining = int(seconds)

    hours = remaining // 3600
    minutes = (remaining % 3600) // 60

    if hours > 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def reset_clock_label(
    window: "RateLimitWindow",
    tz: "tzinfo | None" = None,
) -> "str":
    """
    wall-clock time of the reset, e.g. "Mon 9:30 AM", in tz (local
    time when omitted).
    """
    if window.resets_at is None:
        return ""

    local = window.resets_at.astimezone(tz)
    # %-I is not portable, strip the zero padding by hand
    hour = local.strftime("%I").lstrip("0") or "12"
    return f"{local.strftime('%a')} {hour}:{local.strftime('%M %p')}"


def format_percent(value: "float") -> "str":
    return f"{value:.0f}%"


def last_updated_label(
    last_updated: "datetime | None",
    now: "datetime | None" = None,
) -> "str":
    if last_updated is None:
        return ""

    elapsed = ((now or _utcnow()) - last_updated).total_seconds()
    if elapsed < 60:
        return "Updated just now"
    return f"Updated {int(elapsed // 60)}m ago"


def summarize(
    stats: "HistoricalStats",
    now: "datetime | None" = None,
) -> "StatsSummary":
    return StatsSummary(
        messages=total_messages(stats),
        sessions=total_sessions(stats),
        tool_calls=total_tool_calls(stats),
        tokens=total_tokens(stats),
        days_active=days_since_first_session(stats, now),
        peak_hour=most_active_hour(stats),
    )
