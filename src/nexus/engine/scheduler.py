"""Periodic location sync loop with backoff and aggressive burst escalation."""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from nexus.config import Settings
from nexus.device.location import LocationProvider
from nexus.device.telemetry import DeviceTelemetryProvider
from nexus.engine.supervisor import spawn_supervised
from nexus.errors import describe_error
from nexus.logging import (
    log_burst_completed,
    log_state_change,
    log_sync_result,
    set_agent_id,
)
from nexus.models import ApiResult, Session, SyncRequest, SyncType
from nexus.sync.api_client import ApiClient

logger = logging.getLogger(__name__)

NO_SESSION_MESSAGE = "No active session"

# Doubling beyond this many failures cannot exceed any sane backoff cap
MAX_BACKOFF_EXPONENT = 16


class SyncState(Enum):
    """State of the sync scheduler."""

    STOPPED = "stopped"  # no session armed
    IDLE = "idle"
    SAMPLING = "sampling"
    POSTING = "posting"
    BACKOFF = "backoff"
    AGGRESSIVE_BURST = "aggressive_burst"


class SyncScheduler:
    """Timer-driven sampling and posting of device location.

    Each tick samples telemetry, attempts a bounded location fix and posts
    one normal update (a heartbeat when there is no fix). Ticks never
    overlap. A failed post moves the scheduler to BACKOFF, lengthening the
    wait before the next tick; it never retries in a tight loop.

    A task-removed lifecycle signal starts an aggressive burst: several
    rapid posts carrying the device descriptor, issued independently of
    the tick timer. The process may be killed mid-burst, truncating it.

    Example:
        scheduler = SyncScheduler(settings, api, location, telemetry)
        scheduler.arm(session)
        await scheduler.run()  # until stop()
    """

    def __init__(
        self,
        settings: Settings,
        api: ApiClient,
        location: LocationProvider,
        telemetry: DeviceTelemetryProvider,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            settings: Intervals, burst size and fix timeouts
            api: Client used for every post
            location: Bounded-time location fixes
            telemetry: Battery, signal and descriptor readings
            sleep: Awaitable used for the pause between burst posts
        """
        self.settings = settings
        self._api = api
        self._location = location
        self._telemetry = telemetry
        self._sleep = sleep

        self._state = SyncState.STOPPED
        self._session: Session | None = None
        self._running = False
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._burst_task: asyncio.Task | None = None

        self._consecutive_failures = 0
        self._posts_succeeded = 0
        self._posts_failed = 0
        self._last_result: ApiResult | None = None
        self._last_sync_time: datetime | None = None

        self._state_change_callbacks: list[Callable[[SyncState], None]] = []
        self._session_expired_callbacks: list[Callable[[ApiResult], None]] = []

    # --- Properties and callbacks ---

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def is_running(self) -> bool:
        return self._running

    def on_state_change(self, callback: Callable[[SyncState], None]) -> None:
        """Register callback for state changes."""
        self._state_change_callbacks.append(callback)

    def on_session_expired(self, callback: Callable[[ApiResult], None]) -> None:
        """Register callback for posts rejected with an expired session."""
        self._session_expired_callbacks.append(callback)

    def _set_state(self, new_state: SyncState, trigger: str | None = None) -> None:
        if self._state == new_state:
            return
        old_state = self._state
        self._state = new_state
        log_state_change(logger, old_state.value, new_state.value, trigger)
        for callback in self._state_change_callbacks:
            try:
                callback(new_state)
            except Exception as e:
                logger.debug("State change callback failed: %s", e)

    def _notify_session_expired(self, result: ApiResult) -> None:
        logger.warning("Server reports session expired")
        for callback in self._session_expired_callbacks:
            try:
                callback(result)
            except Exception as e:
                logger.error("Session expired callback failed: %s", e)

    def _record(self, result: ApiResult) -> None:
        self._last_result = result
        self._last_sync_time = datetime.now()
        if result.success:
            self._posts_succeeded += 1
        else:
            self._posts_failed += 1
        if result.session_expired:
            self._notify_session_expired(result)

    # --- Arming ---

    def arm(self, session: Session) -> None:
        """Hand the scheduler a validated session; enters IDLE."""
        self._session = session
        self._consecutive_failures = 0
        self._stop_event.clear()
        set_agent_id(session.deployment_code)
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass
        self._set_state(SyncState.IDLE, "armed")

    def disarm(self) -> None:
        """Drop the session; ticks and bursts become no-ops."""
        self._session = None
        set_agent_id(None)
        self._set_state(SyncState.STOPPED, "disarmed")

    # --- Normal sync loop ---

    def next_delay(self) -> float:
        """Seconds until the next tick, including any backoff."""
        interval = float(self.settings.sync_interval)
        if self._consecutive_failures == 0:
            return interval
        exponent = min(self._consecutive_failures, MAX_BACKOFF_EXPONENT)
        return min(interval * 2**exponent, float(self.settings.max_backoff_interval))

    async def run(self) -> None:
        """Run ticks until stop() is called."""
        if self._session is None:
            raise RuntimeError("arm() must be called with a validated session before run()")

        self._loop = asyncio.get_running_loop()
        # A stop() issued before the loop got scheduled still counts
        self._running = not self._stop_event.is_set()
        logger.info("Sync loop started: interval=%ds", self.settings.sync_interval)

        try:
            while self._running:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    logger.info("Sync loop cancelled")
                    raise
                except Exception as e:
                    logger.error("Sync tick error: %s", e, exc_info=True)

                await self._wait_for_next_tick()
        finally:
            self._running = False
            logger.info(
                "Sync loop stopped: succeeded=%d, failed=%d",
                self._posts_succeeded,
                self._posts_failed,
            )

    async def _wait_for_next_tick(self) -> None:
        if not self._running:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.next_delay())
        except asyncio.TimeoutError:
            pass
        if self._state == SyncState.BACKOFF:
            self._set_state(SyncState.IDLE, "backoff_elapsed")

    async def tick(self) -> ApiResult | None:
        """One sample-and-post cycle; returns None when not armed."""
        session = self._session
        if session is None:
            return None

        async with self._tick_lock:
            self._set_state(SyncState.SAMPLING, "tick")
            telemetry = self._telemetry.snapshot()
            sample = await self._location.get_fix(self.settings.location_fix_timeout)
            if sample is None:
                logger.debug("No location fix this tick, sending heartbeat")

            self._set_state(SyncState.POSTING)
            request = SyncRequest(
                session=session,
                telemetry=telemetry,
                sample=sample,
                sync_type=SyncType.NORMAL,
            )
            try:
                result = await self._api.send(request)
            except Exception as e:
                result = ApiResult.error(describe_error(e))

            log_sync_result(
                logger,
                SyncType.NORMAL.value,
                "location" if sample is not None else "heartbeat",
                result,
            )
            self._record(result)

            if result.success:
                self._consecutive_failures = 0
                self._set_state(SyncState.IDLE, "post_succeeded")
            else:
                self._consecutive_failures += 1
                self._set_state(SyncState.BACKOFF, "post_failed")
            return result

    def stop(self) -> None:
        """Stop the loop after the current tick."""
        self._running = False
        self._stop_event.set()

    # --- Aggressive path ---

    async def send_aggressive_sync_burst(self, burst_count: int | None = None) -> list[ApiResult]:
        """Post ``burst_count`` aggressive updates in sequence.

        One location fix (bounded by ``burst_fix_timeout``) is shared by
        all posts; without it every post is a heartbeat. Each post gets a
        fresh telemetry snapshot and the device descriptor. Failures never
        cut the burst short, so the result list always has one entry per
        attempt, in order.
        """
        count = self.settings.burst_count if burst_count is None else burst_count
        if count < 1:
            raise ValueError("burst_count must be at least 1")

        session = self._session
        if session is None:
            logger.warning("Aggressive burst requested without a session")
            return [ApiResult.error(NO_SESSION_MESSAGE) for _ in range(count)]

        self._set_state(SyncState.AGGRESSIVE_BURST, "task_removed")
        logger.info("Starting aggressive sync burst: count=%d", count)

        sample = await self._location.get_fix(self.settings.burst_fix_timeout)
        kind = "location" if sample is not None else "heartbeat"

        results: list[ApiResult] = []
        for i in range(count):
            try:
                request = SyncRequest(
                    session=session,
                    telemetry=self._telemetry.snapshot(),
                    sample=sample,
                    sync_type=SyncType.AGGRESSIVE,
                    device_descriptor=self._telemetry.device_descriptor(),
                )
                result = await self._api.send(request)
            except Exception as e:
                result = ApiResult.error(f"Sync burst failed: {describe_error(e)}")

            results.append(result)
            log_sync_result(logger, SyncType.AGGRESSIVE.value, kind, result, attempt=i + 1)
            self._record(result)

            if i < count - 1:
                await self._sleep(self.settings.burst_delay)

        log_burst_completed(logger, sum(1 for r in results if r.success), count)
        if self._session is not None:
            self._set_state(SyncState.IDLE, "burst_completed")
        return results

    async def send_online_status(self) -> ApiResult:
        """Single aggressive post announcing the device is online."""
        session = self._session
        if session is None:
            return ApiResult.error(NO_SESSION_MESSAGE)

        sample = await self._location.get_fix(self.settings.burst_fix_timeout)
        request = SyncRequest(
            session=session,
            telemetry=self._telemetry.snapshot(),
            sample=sample,
            sync_type=SyncType.AGGRESSIVE,
            device_descriptor=self._telemetry.device_descriptor(),
        )
        try:
            result = await self._api.send(request)
        except Exception as e:
            result = ApiResult.error(f"Failed to send online status: {describe_error(e)}")
        log_sync_result(
            logger,
            SyncType.AGGRESSIVE.value,
            "location" if sample is not None else "heartbeat",
            result,
        )
        self._record(result)
        return result

    def task_removed(self) -> None:
        """Lifecycle hook for "app removed from recent tasks".

        Safe to call from a signal handler or another thread. Schedules one
        burst on the scheduler's loop; ignored while a burst is running.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("Task removed signal received without an event loop")
            return
        loop.call_soon_threadsafe(self._begin_burst)

    def _begin_burst(self) -> None:
        if self._burst_task is not None and not self._burst_task.done():
            logger.info("Aggressive burst already running, ignoring signal")
            return
        self._burst_task = spawn_supervised(self.send_aggressive_sync_burst(), name="aggressive-burst")

    async def wait_for_burst(self) -> list[ApiResult]:
        """Await the burst started by the last task-removed signal."""
        # Let a pending call_soon_threadsafe run first
        await asyncio.sleep(0)
        if self._burst_task is None:
            return []
        return await self._burst_task

    # --- Status ---

    def get_status(self) -> dict[str, Any]:
        last = self._last_result
        return {
            "state": self._state.value,
            "armed": self._session is not None,
            "running": self._running,
            "consecutive_failures": self._consecutive_failures,
            "next_delay": self.next_delay(),
            "posts_succeeded": self._posts_succeeded,
            "posts_failed": self._posts_failed,
            "last_sync": self._last_sync_time.isoformat() if self._last_sync_time else None,
            "last_result": last.to_dict() if last else None,
        }
