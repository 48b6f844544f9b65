from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from usagesync import derived
from usagesync.models import RateLimitWindow, SyncState

# SyncState field -> "window" label value
WINDOW_LABELS: "dict[str, str]" = {
    "session_limit": "five_hour",
    "weekly_limit": "seven_day",
    "sonnet_limit": "seven_day_sonnet",
    "opus_limit": "seven_day_opus",
}


class MetricsUpdater:
    """
    exposes the published SyncState and the controller's fetch
    outcomes as Prometheus metrics.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._utilization: "Gauge" = Gauge(
            "usagesync_window_utilization_percent",
            "Utilization of each rate-limit window in percent",
            ["window"],
            registry=registry,
        )
        self._needs_auth: "Gauge" = Gauge(
            "usagesync_needs_auth",
            "1 when the engine has no usable credential",
            registry=registry,
        )
        self._stats_totals: "Gauge" = Gauge(
            "usagesync_local_stats",
            "All-time totals from the local stats cache",
            ["kind"],
            registry=registry,
        )
        self._fetch_duration: "Histogram" = Histogram(
            "usagesync_fetch_duration_seconds",
            "Duration of usage endpoint requests",
            registry=registry,
        )
        self._fetch_errors: "Counter" = Counter(
            "usagesync_fetch_errors_total",
            "Total number of failed usage fetches by kind",
            ["kind"],
            registry=registry,
        )
        self._stats_reload_errors: "Counter" = Counter(
            "usagesync_stats_reload_errors_total",
            "Total number of local stats cache reloads that failed to decode",
            registry=registry,
        )
        self._last_fetch_success: "Gauge" = Gauge(
            "usagesync_last_fetch_success_timestamp_seconds",
            "Unix timestamp of the last successful usage fetch",
            registry=registry,
        )

    def apply_state(self, state: "SyncState") -> "None":
        """
        state subscriber: mirrors the windows, the auth flag and the
        local totals into gauges.
        """
        for field_name, label in WINDOW_LABELS.items():
            window: "RateLimitWindow | None" = getattr(state, field_name)
            if window is not None:
                self._utilization.labels(window=label).set(window.utilization)

        self._needs_auth.set(1 if state.needs_auth else 0)

        if state.last_updated is not None:
            self._last_fetch_success.set(state.last_updated.timestamp())

        stats = state.historical_stats
        if stats is not None:
            summary = derived.summarize(stats)
            self._stats_totals.labels(kind="messages").set(summary.messages)
            self._stats_totals.labels(kind="sessions").set(summary.sessions)
            self._stats_totals.labels(kind="tool_calls").set(summary.tool_calls)
            self._stats_totals.labels(kind="tokens").set(summary.tokens)

    def observe_fetch_duration(self, duration_seconds: "float") -> "None":
        self._fetch_duration.observe(duration_seconds)

    def inc_fetch_error(self, kind: "str") -> "None":
        self._fetch_errors.labels(kind=kind).inc()

    def inc_stats_reload_error(self) -> "None":
        self._stats_reload_errors.inc()
