import asyncio
import enum
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import structlog

from usagesync.api.base import UsageSource
from usagesync.credentials import CredentialProvider
from usagesync.errors import (
    AuthExpiredError,
    HttpFailureError,
    StatsDecodeError,
    TransportFailureError,
)
from usagesync.metrics import MetricsUpdater
from usagesync.models import SyncState
from usagesync.state import StateHolder, Subscriber
from usagesync.stats import load_historical_stats

logger = structlog.get_logger()

LOGIN_HINT = "Run 'claude login' in terminal"
# label shown when the credential carries no subscription type
DEFAULT_SUBSCRIPTION_LABEL = "Pro"


class Phase(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    IDLE = "idle"
    REFRESHING = "refreshing"
    AUTH_EXPIRED = "auth_expired"


class SyncController:
    """
    SyncController owns the published SyncState and drives refresh
    cycles: reload the local stats cache, read the credential, fetch
    the rate-limit snapshot and apply the outcome.

    Manual and timer-triggered refreshes are posted to one queue that
    run() consumes on the owning event loop. At most one cycle is
    active at a time; a request made while a cycle is active or
    already queued is dropped.
    """

    def __init__(
        self,
        credentials: "CredentialProvider",
        source: "UsageSource",
        stats_path: "Path",
        metrics_updater: "MetricsUpdater",
        refresh_interval_seconds: "int" = 60,
        state: "StateHolder | None" = None,
    ) -> "None":
        self._credentials = credentials
        self._source = source
        self._stats_path = stats_path
        self._metrics = metrics_updater
        self._interval = refresh_interval_seconds
        self._state: "StateHolder" = state or StateHolder()
        self._phase: "Phase" = Phase.IDLE
        self._cycle_active = False
        self._request_pending = False
        # None is the stop sentinel
        self._requests: "asyncio.Queue[str | None]" = asyncio.Queue()
        self._stop_event: "asyncio.Event" = asyncio.Event()

    @property
    def state(self) -> "SyncState":
        return self._state.current

    @property
    def phase(self) -> "Phase":
        return self._phase

    @property
    def cycle_active(self) -> "bool":
        return self._cycle_active

    def subscribe(self, callback: "Subscriber") -> "Callable[[], None]":
        return self._state.subscribe(callback)

    def request_refresh(self, reason: "str" = "manual") -> "bool":
        """
        posts a cycle request. Returns False when the request was
        coalesced into an active or already queued cycle.
        """
        if self._stop_event.is_set():
            return False

        if self._cycle_active or self._request_pending:
            logger.debug("refresh_coalesced", reason=reason, phase=self._phase.value)
            return False

        self._request_pending = True
        self._requests.put_nowait(reason)
        return True

    def stop(self) -> "None":
        """
        signals run() to return once the active cycle, if any, is done.
        """
        self._stop_event.set()
        self._requests.put_nowait(None)

    async def close(self) -> "None":
        """
        closes the usage source.
        """
        await self._source.close()

    async def run(self) -> "None":
        """
        runs cycles until stop() is called. A first cycle starts
        immediately, later ones every refresh interval or on demand.
        """
        timer = asyncio.create_task(self._run_timer())
        self.request_refresh("startup")

        try:
            while True:
                reason = await self._requests.get()
                if reason is None or self._stop_event.is_set():
                    break

                self._request_pending = False
                try:
                    await self.run_cycle(reason)
                except Exception:
                    # a failed cycle must not end the loop
                    logger.exception("refresh_cycle_error", reason=reason)
        finally:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

    async def _run_timer(self) -> "None":
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                self.request_refresh("timer")

    async def run_cycle(self, reason: "str" = "manual") -> "bool":
        """
        runs one full cycle. Returns False without doing anything when
        another cycle is active. Never raises for fetch or decode
        failures; they end up in SyncState.error_message.
        """
        if self._cycle_active:
            logger.debug("refresh_coalesced", reason=reason, phase=self._phase.value)
            return False

        self._cycle_active = True
        logger.info("refresh_cycle_start", reason=reason)
        try:
            # local stats do not depend on credentials or the network
            self._reload_stats()

            credential = self._credentials.fetch_credential()
            if credential is None:
                self._phase = Phase.UNAUTHENTICATED
                self._state.update(needs_auth=True, error_message=LOGIN_HINT)
                logger.info("credential_missing")
                return True

            self._state.update(
                subscription_label=credential.subscription_label
                or DEFAULT_SUBSCRIPTION_LABEL
            )
            await self._refresh_usage(credential.access_token)
        finally:
            if self._state.current.is_loading:
                # the fetch was cancelled
                self._phase = Phase.IDLE
                self._state.update(is_loading=False)
            self._cycle_active = False
            logger.info("refresh_cycle_end", phase=self._phase.value)

        return True

    def _reload_stats(self) -> "None":
        try:
            stats = load_historical_stats(self._stats_path)
        except StatsDecodeError as e:
            # keep the previous snapshot
            logger.warning("stats_reload_failed", path=str(self._stats_path), error=str(e))
            self._metrics.inc_stats_reload_error()
            return

        self._state.update(historical_stats=stats)

    async def _refresh_usage(self, token: "str") -> "None":
        self._phase = Phase.REFRESHING
        self._state.update(is_loading=True, error_message=None)
        fetch_start = time.monotonic()

        try:
            snapshot = await self._source.fetch_usage(token)

        except AuthExpiredError as e:
            self._phase = Phase.AUTH_EXPIRED
            self._state.update(is_loading=False, needs_auth=True, error_message=str(e))
            self._metrics.inc_fetch_error("auth_expired")
            logger.warning("usage_auth_expired")
            return

        except HttpFailureError as e:
            self._fail("http", str(e), status_code=e.status_code)
            return

        except TransportFailureError as e:
            self._fail("transport", str(e))
            return

        except Exception as e:
            logger.exception("usage_fetch_unexpected_error")
            self._fail("unexpected", str(e) or type(e).__name__)
            return

        finally:
            self._metrics.observe_fetch_duration(time.monotonic() - fetch_start)

        self._phase = Phase.IDLE
        self._state.update(
            session_limit=snapshot.five_hour,
            weekly_limit=snapshot.seven_day,
            sonnet_limit=snapshot.seven_day_sonnet,
            opus_limit=snapshot.seven_day_opus,
            extra_usage=snapshot.extra_usage,
            last_updated=datetime.now(timezone.utc),
            is_loading=False,
            error_message=None,
            needs_auth=False,
        )
        logger.info(
            "usage_refreshed",
            session=snapshot.five_hour.utilization if snapshot.five_hour else None,
            weekly=snapshot.seven_day.utilization if snapshot.seven_day else None,
        )

    def _fail(self, kind: "str", message: "str", **context: "object") -> "None":
        # windows and needs_auth keep their last known values
        self._phase = Phase.IDLE
        self._state.update(is_loading=False, error_message=message)
        self._metrics.inc_fetch_error(kind)
        logger.warning("usage_fetch_failed", kind=kind, error=message, **context)
