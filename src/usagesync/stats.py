import json
from pathlib import Path
from typing import Any

import structlog

from usagesync.errors import StatsDecodeError
from usagesync.models import (
    DailyActivity,
    HistoricalStats,
    LongestSession,
    ModelUsage,
)

logger = structlog.get_logger()


def _opt_int(data: "dict[str, Any]", *keys: "str") -> "int | None":
    """
    returns the first key present as an integer. JSON writers may emit
    whole numbers as floats, those are accepted too.
    """
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            raise StatsDecodeError(f"{key}: expected a number, got a boolean")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise StatsDecodeError(f"{key}: expected an integer, got {value!r}")
    return None


def _opt_str(data: "dict[str, Any]", key: "str") -> "str | None":
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise StatsDecodeError(f"{key}: expected a string, got {value!r}")
    return value


def _opt_object(data: "dict[str, Any]", key: "str") -> "dict[str, Any] | None":
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise StatsDecodeError(f"{key}: expected an object")
    return value


def _decode_model_usage(raw: "dict[str, Any]") -> "dict[str, ModelUsage]":
    usage: "dict[str, ModelUsage]" = {}
    for model, entry in raw.items():
        if not isinstance(entry, dict):
            raise StatsDecodeError(f"modelUsage.{model}: expected an object")
        usage[model] = ModelUsage(
            input_tokens=_opt_int(entry, "inputTokens"),
            output_tokens=_opt_int(entry, "outputTokens"),
            # Claude Code writes the *InputTokens spelling
            cache_read_tokens=_opt_int(entry, "cacheReadInputTokens", "cacheReadTokens"),
            cache_creation_tokens=_opt_int(
                entry, "cacheCreationInputTokens", "cacheCreationTokens"
            ),
        )
    return usage


def _decode_hour_counts(raw: "dict[str, Any]") -> "dict[str, int]":
    counts: "dict[str, int]" = {}
    for hour in raw:
        count = _opt_int(raw, hour)
        if count is not None:
            counts[hour] = count
    return counts


def _decode_daily_activity(raw: "Any") -> "tuple[DailyActivity, ...]":
    if not isinstance(raw, list):
        raise StatsDecodeError("dailyActivity: expected an array")

    days: "list[DailyActivity]" = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise StatsDecodeError("dailyActivity: expected an array of objects")
        days.append(
            DailyActivity(
                date=_opt_str(entry, "date"),
                message_count=_opt_int(entry, "messageCount"),
                session_count=_opt_int(entry, "sessionCount"),
                tool_call_count=_opt_int(entry, "toolCallCount"),
            )
        )
    return tuple(days)


def decode_historical_stats(data: "Any") -> "HistoricalStats":
    """
    decodes the parsed stats-cache document. Missing fields stay None
    (or empty for the collections); present fields of the wrong shape
    raise StatsDecodeError.
    """
    if not isinstance(data, dict):
        raise StatsDecodeError("stats cache: expected a JSON object")

    longest = _opt_object(data, "longestSession")
    model_usage = _opt_object(data, "modelUsage")
    hour_counts = _opt_object(data, "hourCounts")
    daily_activity = data.get("dailyActivity")

    return HistoricalStats(
        total_sessions=_opt_int(data, "totalSessions"),
        total_messages=_opt_int(data, "totalMessages"),
        longest_session=(
            LongestSession(
                duration=_opt_int(longest, "duration"),
                message_count=_opt_int(longest, "messageCount"),
            )
            if longest is not None
            else None
        ),
        model_usage=_decode_model_usage(model_usage) if model_usage else {},
        first_session_date=_opt_str(data, "firstSessionDate"),
        hour_counts=_decode_hour_counts(hour_counts) if hour_counts else {},
        daily_activity=(
            _decode_daily_activity(daily_activity) if daily_activity is not None else ()
        ),
    )


def load_historical_stats(path: "Path") -> "HistoricalStats | None":
    """
    reads and decodes the stats cache at path. Returns None when the
    file does not exist; raises StatsDecodeError when it exists but
    cannot be read or decoded.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("stats_cache_missing", path=str(path))
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise StatsDecodeError(f"cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        raise StatsDecodeError(f"malformed JSON in {path}: {e}") from e

    stats = decode_historical_stats(data)
    logger.debug(
        "stats_cache_loaded",
        path=str(path),
        days=len(stats.daily_activity),
        models=len(stats.model_usage),
    )
    return stats
