from datetime import datetime, timezone

import httpx
import pytest
import respx

from usagesync.api.anthropic import (
    ANTHROPIC_BASE_URL,
    API_BETA_HEADER,
    USAGE_PATH,
    AnthropicUsageClient,
    decode_usage_snapshot,
)
from usagesync.errors import AuthExpiredError, HttpFailureError, TransportFailureError

USAGE_URL = f"{ANTHROPIC_BASE_URL}{USAGE_PATH}"

USAGE_BODY = {
    "five_hour": {"utilization": 37.0, "resets_at": "2025-10-19T18:00:00.512345+00:00"},
    "seven_day": {"utilization": 12.5, "resets_at": "2025-10-23T09:00:00.000Z"},
    "seven_day_oauth_apps": None,
    "seven_day_opus": {"utilization": 0.0, "resets_at": None},
    "seven_day_sonnet": {"utilization": 104.2, "resets_at": "2025-10-23T09:00:00Z"},
    "seven_day_cowork": None,
    "iguana_necktie": None,
    "extra_usage": {
        "is_enabled": True,
        "monthly_limit": 5000,
        "used_credits": 1234.5,
        "utilization": 24.69,
    },
}


class TestAnthropicUsageClientFetchUsage:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_and_parses_usage(self) -> "None":
        route = respx.get(USAGE_URL).mock(
            return_value=httpx.Response(200, json=USAGE_BODY)
        )

        client = AnthropicUsageClient()
        snapshot = await client.fetch_usage("sk-ant-oat01-test")
        await client.close()

        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-ant-oat01-test"
        assert request.headers["anthropic-beta"] == API_BETA_HEADER
        assert request.headers["Content-Type"] == "application/json"

        assert snapshot.five_hour.utilization == 37.0
        assert snapshot.five_hour.resets_at == datetime(
            2025, 10, 19, 18, 0, 0, 512345, tzinfo=timezone.utc
        )
        assert snapshot.seven_day.resets_at == datetime(
            2025, 10, 23, 9, 0, tzinfo=timezone.utc
        )
        assert snapshot.seven_day_opus.resets_at is None
        # utilization is not clamped
        assert snapshot.seven_day_sonnet.utilization == 104.2
        assert snapshot.seven_day_oauth_apps is None
        assert snapshot.extra_usage.enabled is True
        assert snapshot.extra_usage.monthly_limit == 5000.0
        assert snapshot.extra_usage.used_credits == 1234.5

    @pytest.mark.asyncio
    @respx.mock
    async def test_401_is_auth_expired(self) -> "None":
        respx.get(USAGE_URL).mock(return_value=httpx.Response(401))

        client = AnthropicUsageClient()
        with pytest.raises(AuthExpiredError):
            await client.fetch_usage("expired")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [403, 429, 500, 503])
    async def test_other_status_is_http_failure(self, status_code: "int") -> "None":
        client = AnthropicUsageClient()
        with respx.mock:
            respx.get(USAGE_URL).mock(return_value=httpx.Response(status_code))
            with pytest.raises(HttpFailureError) as exc_info:
                await client.fetch_usage("tok")

        assert exc_info.value.status_code == status_code
        assert str(exc_info.value) == f"HTTP error {status_code}"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error_is_transport_failure(self) -> "None":
        respx.get(USAGE_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        client = AnthropicUsageClient()
        with pytest.raises(TransportFailureError, match="connection refused"):
            await client.fetch_usage("tok")

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_transport_failure(self) -> "None":
        respx.get(USAGE_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        client = AnthropicUsageClient(timeout=0.1)
        with pytest.raises(TransportFailureError):
            await client.fetch_usage("tok")

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body_is_transport_failure(self) -> "None":
        respx.get(USAGE_URL).mock(return_value=httpx.Response(200, text="<html>"))

        client = AnthropicUsageClient()
        with pytest.raises(TransportFailureError, match="invalid usage response"):
            await client.fetch_usage("tok")

    @pytest.mark.asyncio
    @respx.mock
    async def test_issues_exactly_one_request_on_failure(self) -> "None":
        route = respx.get(USAGE_URL).mock(return_value=httpx.Response(503))

        client = AnthropicUsageClient()
        with pytest.raises(HttpFailureError):
            await client.fetch_usage("tok")

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_custom_base_url(self) -> "None":
        route = respx.get("http://localhost:8080/api/oauth/usage").mock(
            return_value=httpx.Response(200, json={})
        )

        client = AnthropicUsageClient(base_url="http://localhost:8080/")
        snapshot = await client.fetch_usage("tok")

        assert route.call_count == 1
        assert snapshot.five_hour is None


class TestDecodeUsageSnapshot:
    def test_empty_body(self) -> "None":
        snapshot = decode_usage_snapshot({})
        assert snapshot.five_hour is None
        assert snapshot.extra_usage is None

    def test_unparseable_reset_keeps_window(self) -> "None":
        snapshot = decode_usage_snapshot(
            {"five_hour": {"utilization": 5, "resets_at": "soon"}}
        )
        assert snapshot.five_hour.utilization == 5.0
        assert snapshot.five_hour.resets_at is None

    def test_extra_usage_optional_fields(self) -> "None":
        snapshot = decode_usage_snapshot({"extra_usage": {"is_enabled": False}})
        assert snapshot.extra_usage.enabled is False
        assert snapshot.extra_usage.monthly_limit is None
        assert snapshot.extra_usage.utilization is None

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"five_hour": 37},
            {"five_hour": {"resets_at": "2025-10-19T18:00:00Z"}},
            {"five_hour": {"utilization": "high"}},
            {"extra_usage": {"monthly_limit": 10}},
            {"extra_usage": {"is_enabled": True, "used_credits": "lots"}},
        ],
    )
    def test_invalid_shapes_raise(self, body: "object") -> "None":
        with pytest.raises(ValueError):
            decode_usage_snapshot(body)
