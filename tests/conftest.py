import json
from pathlib import Path
from typing import Any, Callable

import pytest
from prometheus_client import CollectorRegistry


class InMemorySecretStore:
    """
    SecretStore fake keyed by service name.
    """

    def __init__(self) -> "None":
        self.entries: "dict[str, bytes]" = {}
        self.lookups: "int" = 0

    def lookup(self, service_name: "str") -> "bytes | None":
        self.lookups += 1
        return self.entries.get(service_name)


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def secret_store() -> "InMemorySecretStore":
    return InMemorySecretStore()


@pytest.fixture()
def credential_blob() -> "Callable[..., bytes]":
    """
    builds the JSON blob Claude Code stores after login.
    """

    def _build(
        access_token: "str" = "sk-ant-oat01-test",
        subscription_type: "str | None" = "max",
    ) -> "bytes":
        oauth: "dict[str, Any]" = {
            "accessToken": access_token,
            "refreshToken": "sk-ant-ort01-test",
            "expiresAt": 1760000000000,
            "rateLimitTier": "default_claude_max_20x",
        }
        if subscription_type is not None:
            oauth["subscriptionType"] = subscription_type
        return json.dumps({"claudeAiOauth": oauth}).encode()

    return _build


@pytest.fixture()
def stats_path(tmp_path: "Path") -> "Path":
    return tmp_path / "stats-cache.json"


@pytest.fixture()
def sample_stats() -> "dict[str, Any]":
    return {
        "version": 1,
        "totalSessions": 42,
        "totalMessages": 1337,
        "longestSession": {"duration": 7200000, "messageCount": 120},
        "modelUsage": {
            "claude-sonnet-4-5": {
                "inputTokens": 1000,
                "outputTokens": 500,
                "cacheReadInputTokens": 9000,
                "cacheCreationInputTokens": 300,
            },
            "claude-opus-4-1": {"inputTokens": 200, "outputTokens": 100},
        },
        "firstSessionDate": "2025-01-15T09:12:00.000Z",
        "hourCounts": {"9": 2, "14": 5, "22": 1},
        "dailyActivity": [
            {
                "date": "2025-01-15",
                "messageCount": 10,
                "sessionCount": 1,
                "toolCallCount": 4,
            },
            {"date": "2025-01-16", "messageCount": 3, "sessionCount": 2},
            {
                "date": "2025-01-17",
                "messageCount": 7,
                "sessionCount": 1,
                "toolCallCount": 6,
            },
        ],
    }
