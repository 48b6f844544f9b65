import argparse
from pathlib import Path

from usagesync.config import Config


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="usagesync",
        description="Claude rate-limit usage synchronization engine",
    )
    parser.add_argument(
        "--refresh.interval",
        dest="refresh_interval",
        type=int,
        default=60,
        help="Refresh interval in seconds (default: 60)",
    )
    parser.add_argument(
        "--request.timeout",
        dest="request_timeout",
        type=float,
        default=10.0,
        help="Usage request timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "--stats.path",
        dest="stats_path",
        type=Path,
        default=None,
        help="Path of the local stats cache (default: <claude dir>/stats-cache.json)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default="",
        help="Address to expose Prometheus metrics on, e.g. :9186 (default: disabled)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log.format",
        dest="log_format",
        default="console",
        choices=["console", "json"],
        help="Log output format (default: console)",
    )

    args = parser.parse_args(argv)
    if args.refresh_interval <= 0:
        parser.error("--refresh.interval must be positive")

    config = Config.from_env()
    config.refresh_interval = args.refresh_interval
    config.request_timeout = args.request_timeout
    config.stats_path_override = args.stats_path
    config.listen_address = args.listen_address
    config.log_level = args.log_level
    config.log_format = args.log_format
    return config
