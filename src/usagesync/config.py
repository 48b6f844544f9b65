import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CLAUDE_DIR = Path.home() / ".claude"
DEFAULT_SERVICE_NAME = "Claude Code-credentials"


@dataclass
class Config:
    # directory Claude Code keeps its state in
    claude_dir: "Path" = DEFAULT_CLAUDE_DIR
    # overrides claude_dir/stats-cache.json when set
    stats_path_override: "Path | None" = None
    credentials_service: "str" = DEFAULT_SERVICE_NAME
    # refresh interval in seconds
    refresh_interval: "int" = 60
    # usage request timeout in seconds
    request_timeout: "float" = 10.0
    # metrics listen address, ":9186" or "127.0.0.1:9186";
    # empty disables the metrics server
    listen_address: "str" = ""
    log_level: "str" = "info"
    # "console" or "json"
    log_format: "str" = "console"

    @classmethod
    def from_env(cls) -> "Config":
        claude_dir = os.environ.get("CLAUDE_CONFIG_DIR", "")
        return cls(
            claude_dir=Path(claude_dir).expanduser() if claude_dir else DEFAULT_CLAUDE_DIR,
            credentials_service=os.environ.get(
                "USAGESYNC_CREDENTIALS_SERVICE", DEFAULT_SERVICE_NAME
            ),
        )

    @property
    def stats_path(self) -> "Path":
        if self.stats_path_override is not None:
            return self.stats_path_override
        return self.claude_dir / "stats-cache.json"

    @property
    def credentials_path(self) -> "Path":
        return self.claude_dir / ".credentials.json"

    @property
    def metrics_enabled(self) -> "bool":
        return bool(self.listen_address)
