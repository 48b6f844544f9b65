import asyncio
import signal

import structlog
from prometheus_client import start_http_server

from usagesync import derived
from usagesync.api.anthropic import AnthropicUsageClient
from usagesync.cli import parse_args
from usagesync.controller import SyncController
from usagesync.credentials import CredentialProvider, default_secret_stores
from usagesync.logging import setup_logging
from usagesync.metrics import MetricsUpdater
from usagesync.models import SyncState

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '127.0.0.1:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def _log_state(state: "SyncState") -> "None":
    """
    headless stand-in for the status bar: logs what it would render.
    """
    if state.is_loading:
        return

    fields: "dict[str, object]" = {
        "plan": state.subscription_label,
        "needs_auth": state.needs_auth,
    }
    for name, window in (
        ("session", state.session_limit),
        ("weekly", state.weekly_limit),
        ("sonnet", state.sonnet_limit),
        ("opus", state.opus_limit),
    ):
        if window is not None:
            fields[name] = derived.format_percent(window.utilization)
            fields[f"{name}_resets_in"] = derived.time_until_reset(window)

    if state.historical_stats is not None:
        summary = derived.summarize(state.historical_stats)
        fields["messages"] = summary.messages
        fields["tool_calls"] = summary.tool_calls
        fields["days_active"] = summary.days_active
        fields["peak_hour"] = summary.peak_hour

    if state.error_message:
        fields["error"] = state.error_message

    logger.info("usage_state", **fields)


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level, config.log_format)

    metrics_updater = MetricsUpdater()
    credentials = CredentialProvider(
        default_secret_stores(config),
        service_name=config.credentials_service,
    )

    if config.metrics_enabled:
        host, port = _parse_listen_address(config.listen_address)
        start_http_server(port, addr=host)
        logger.info("metrics_server_started", host=host, port=port)

    async def _run() -> "None":
        controller = SyncController(
            credentials,
            AnthropicUsageClient(timeout=config.request_timeout),
            config.stats_path,
            metrics_updater,
            config.refresh_interval,
        )
        controller.subscribe(metrics_updater.apply_state)
        controller.subscribe(_log_state)

        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, quit after the active cycle;
        # SIGUSR1 asks for an immediate refresh
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, controller.stop)
        loop.add_signal_handler(signal.SIGUSR1, controller.request_refresh, "signal")

        logger.info(
            "engine_started",
            stats_path=str(config.stats_path),
            interval=config.refresh_interval,
        )
        try:
            await controller.run()
        finally:
            logger.info("shutting_down")
            await controller.close()
            logger.info("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
