from typing import Any

import httpx
import structlog

from usagesync._version import __version__
from usagesync.errors import AuthExpiredError, HttpFailureError, TransportFailureError
from usagesync.models import (
    ExtraUsageInfo,
    RateLimitWindow,
    UsageSnapshot,
    parse_iso_timestamp,
)

logger = structlog.get_logger()

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
USAGE_PATH = "/api/oauth/usage"
API_BETA_HEADER = "oauth-2025-04-20"

# response key -> UsageSnapshot field, in the order the API lists them
WINDOW_KEYS: "tuple[str, ...]" = (
    "five_hour",
    "seven_day",
    "seven_day_oauth_apps",
    "seven_day_opus",
    "seven_day_sonnet",
    "seven_day_cowork",
    "iguana_necktie",
)


def _opt_float(data: "dict[str, Any]", key: "str") -> "float | None":
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    return float(value)


def _decode_window(key: "str", raw: "Any") -> "RateLimitWindow | None":
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"{key}: expected an object")

    utilization = _opt_float(raw, "utilization")
    if utilization is None:
        raise ValueError(f"{key}.utilization is missing")

    resets_at = None
    raw_resets_at = raw.get("resets_at")
    if isinstance(raw_resets_at, str):
        resets_at = parse_iso_timestamp(raw_resets_at)
        if resets_at is None:
            logger.debug("usage_reset_unparseable", window=key, value=raw_resets_at)

    return RateLimitWindow(utilization=utilization, resets_at=resets_at)


def _decode_extra_usage(raw: "Any") -> "ExtraUsageInfo | None":
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("extra_usage: expected an object")

    enabled = raw.get("is_enabled")
    if not isinstance(enabled, bool):
        raise ValueError("extra_usage.is_enabled is missing")

    return ExtraUsageInfo(
        enabled=enabled,
        monthly_limit=_opt_float(raw, "monthly_limit"),
        used_credits=_opt_float(raw, "used_credits"),
        utilization=_opt_float(raw, "utilization"),
    )


def decode_usage_snapshot(data: "Any") -> "UsageSnapshot":
    """
    decodes the usage endpoint's JSON body. Raises ValueError when
    the body does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise ValueError("usage response: expected a JSON object")

    windows = {key: _decode_window(key, data.get(key)) for key in WINDOW_KEYS}
    return UsageSnapshot(
        **windows,
        extra_usage=_decode_extra_usage(data.get("extra_usage")),
    )


class AnthropicUsageClient:
    """
    AnthropicUsageClient implements the UsageSource protocol against
    the Claude OAuth usage endpoint. Each fetch_usage call issues
    exactly one GET; retrying is left to the caller's schedule.
    """

    def __init__(
        self,
        timeout: "float" = 10.0,
        base_url: "str" = ANTHROPIC_BASE_URL,
    ) -> "None":
        self._url = f"{base_url.rstrip('/')}{USAGE_PATH}"
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "anthropic-beta": API_BETA_HEADER,
                "Content-Type": "application/json",
                "User-Agent": f"usagesync/{__version__}",
            },
        )

    @property
    def url(self) -> "str":
        return self._url

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    async def fetch_usage(self, token: "str") -> "UsageSnapshot":
        logger.debug("usage_fetch", url=self._url)
        try:
            resp = await self._client.get(
                self._url,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            # timeouts stringify to "" on some transports
            raise TransportFailureError(str(e) or type(e).__name__) from e

        if resp.status_code == 401:
            raise AuthExpiredError()

        if resp.status_code != 200:
            raise HttpFailureError(resp.status_code)

        try:
            snapshot = decode_usage_snapshot(resp.json())
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise TransportFailureError(f"invalid usage response: {e}") from e

        logger.debug(
            "usage_fetch_done",
            session=snapshot.five_hour.utilization if snapshot.five_hour else None,
            weekly=snapshot.seven_day.utilization if snapshot.seven_day else None,
        )
        return snapshot
