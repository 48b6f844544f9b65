from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class Credential:
    """
    Credential is the OAuth entry written by the Claude Code login
    flow. It is read fresh on every cycle and never stored.
    """

    access_token: "str"
    refresh_token: "str"
    # epoch milliseconds, as stored by the login tool
    expires_at: "int"
    # subscriptionType title-cased, e.g. "Max"
    subscription_label: "str | None" = None
    rate_limit_tier: "str | None" = None

    @property
    def expires_at_datetime(self) -> "datetime":
        return datetime.fromtimestamp(self.expires_at / 1000, tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class RateLimitWindow:
    """
    RateLimitWindow is one rolling rate-limit period.
    """

    # percentage of the window's quota, not bounded to 100
    utilization: "float"
    resets_at: "datetime | None" = None


@dataclass(frozen=True, slots=True)
class ExtraUsageInfo:
    enabled: "bool"
    monthly_limit: "float | None" = None
    used_credits: "float | None" = None
    utilization: "float | None" = None


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    """
    UsageSnapshot is a decoded response of the OAuth usage endpoint.
    """

    five_hour: "RateLimitWindow | None" = None
    seven_day: "RateLimitWindow | None" = None
    seven_day_oauth_apps: "RateLimitWindow | None" = None
    seven_day_opus: "RateLimitWindow | None" = None
    seven_day_sonnet: "RateLimitWindow | None" = None
    seven_day_cowork: "RateLimitWindow | None" = None
    iguana_necktie: "RateLimitWindow | None" = None
    extra_usage: "ExtraUsageInfo | None" = None


@dataclass(frozen=True, slots=True)
class LongestSession:
    duration: "int | None" = None
    message_count: "int | None" = None


@dataclass(frozen=True, slots=True)
class ModelUsage:
    input_tokens: "int | None" = None
    output_tokens: "int | None" = None
    cache_read_tokens: "int | None" = None
    cache_creation_tokens: "int | None" = None


@dataclass(frozen=True, slots=True)
class DailyActivity:
    # ISO date, e.g. "2025-01-15"
    date: "str | None" = None
    message_count: "int | None" = None
    session_count: "int | None" = None
    tool_call_count: "int | None" = None


@dataclass(frozen=True, slots=True)
class HistoricalStats:
    """
    HistoricalStats mirrors ~/.claude/stats-cache.json. Missing
    fields stay None; zero-defaulting is done by the derived metrics.
    """

    total_sessions: "int | None" = None
    total_messages: "int | None" = None
    longest_session: "LongestSession | None" = None
    model_usage: "dict[str, ModelUsage]" = field(default_factory=dict)
    first_session_date: "str | None" = None
    # hour label ("0".."23") -> count
    hour_counts: "dict[str, int]" = field(default_factory=dict)
    daily_activity: "tuple[DailyActivity, ...]" = ()


@dataclass(frozen=True, slots=True)
class SyncState:
    """
    SyncState is the view published to the presentation layer.
    Instances are immutable; the controller swaps in a new one
    on every change.
    """

    session_limit: "RateLimitWindow | None" = None
    weekly_limit: "RateLimitWindow | None" = None
    sonnet_limit: "RateLimitWindow | None" = None
    opus_limit: "RateLimitWindow | None" = None
    extra_usage: "ExtraUsageInfo | None" = None
    historical_stats: "HistoricalStats | None" = None
    subscription_label: "str" = ""
    is_loading: "bool" = False
    last_updated: "datetime | None" = None
    error_message: "str | None" = None
    needs_auth: "bool" = False


def parse_iso_timestamp(value: "str") -> "datetime | None":
    """
    parses ISO 8601 strings such as "2025-01-15T10:30:00.123456Z" or
    "2025-01-15". Naive values are read as UTC. Returns None when the
    string is not a timestamp.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
