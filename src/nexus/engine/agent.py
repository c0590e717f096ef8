"""Tracker agent coordinating session lifecycle and the sync scheduler."""

import asyncio
import logging
from typing import Any

from nexus.config import Settings
from nexus.device.location import LocationProvider
from nexus.device.permissions import PermissionGate, default_permission_gate
from nexus.device.telemetry import DeviceTelemetryProvider
from nexus.engine.scheduler import SyncScheduler
from nexus.engine.supervisor import spawn_supervised
from nexus.logging import log_session_cleared
from nexus.models import ApiResult, Session
from nexus.session.router import StartupDecision, StartupRouter
from nexus.session.store import SessionStore, clear_session, load_session, save_session
from nexus.session.validator import SessionValidator
from nexus.sync.api_client import ApiClient

logger = logging.getLogger(__name__)


class TrackerAgent:
    """High-level orchestrator for the tracking agent.

    Wires the API client, providers, validator, startup router and
    scheduler together. This is the entry point the CLI uses.

    Example:
        agent = TrackerAgent(settings, FileSessionStore(settings.session_file))
        decision = await agent.start()
        # ... runs until stopped ...
        await agent.stop()
    """

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        api: ApiClient | None = None,
        location: LocationProvider | None = None,
        telemetry: DeviceTelemetryProvider | None = None,
        permission_gate: PermissionGate | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self._log = logger

        self.permission_gate = permission_gate or default_permission_gate()
        self.api = api or ApiClient(settings)
        self.telemetry = telemetry or DeviceTelemetryProvider()
        self.location = location or LocationProvider(permission_gate=self.permission_gate)

        self.validator = SessionValidator(self.api)
        self.router = StartupRouter(store, self.validator, self.permission_gate)
        self.scheduler = SyncScheduler(settings, self.api, self.location, self.telemetry)
        self.scheduler.on_session_expired(self._handle_session_expired)

        self._sync_task: asyncio.Task | None = None
        self._decision: StartupDecision | None = None
        self._revalidating = False

    @property
    def decision(self) -> StartupDecision | None:
        return self._decision

    # --- Session lifecycle ---

    async def login(self, token: str, deployment_code: str) -> ApiResult:
        """Log in remotely and persist the session on success."""
        result = await self.api.login(
            token, deployment_code, device_descriptor=self.telemetry.device_descriptor()
        )
        if result.success:
            save_session(self.store, Session(token, deployment_code, lock_flag=True))
            self._log.info("Logged in: deployment_code=%s", deployment_code)
        else:
            self._log.warning("Login failed: %s", result.message)
        return result

    async def logout(self) -> ApiResult:
        """Log out remotely, stop syncing and clear the stored session.

        The local session is cleared whatever the server answers.
        """
        session = self.scheduler.session or load_session(self.store)
        await self.stop_sync()
        self.scheduler.disarm()

        if session is None:
            result = ApiResult.error("No active session")
        else:
            result = await self.api.logout(session.token, session.deployment_code)
        clear_session(self.store)
        log_session_cleared(self._log, "logout")
        return result

    # --- Sync lifecycle ---

    async def start(self) -> StartupDecision:
        """Route startup and, on RESUME, arm and start the sync loop.

        The loop runs as a supervised background task; this returns as
        soon as routing is decided.
        """
        self._decision = await self.router.resolve()
        self._log.info("Startup decision: %s", self._decision.value)

        if self._decision is StartupDecision.RESUME:
            session = load_session(self.store)
            if session is not None:
                self.scheduler.arm(session)
                self._sync_task = spawn_supervised(self.scheduler.run(), name="sync-loop")
        return self._decision

    async def wait(self) -> None:
        """Block until the sync loop finishes."""
        if self._sync_task is not None:
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass

    async def stop_sync(self) -> None:
        self.scheduler.stop()
        if self._sync_task and not self._sync_task.done():
            try:
                await asyncio.wait_for(self._sync_task, timeout=self.settings.aggressive_timeout)
            except asyncio.TimeoutError:
                self._sync_task.cancel()
                try:
                    await self._sync_task
                except asyncio.CancelledError:
                    pass
        self._sync_task = None

    async def stop(self) -> None:
        """Stop syncing and release the HTTP client."""
        await self.stop_sync()
        await self.api.close()
        self._log.info("Tracker agent stopped")

    def task_removed(self) -> None:
        """Forward the platform task-removed signal to the scheduler."""
        self.scheduler.task_removed()

    def _handle_session_expired(self, result: ApiResult) -> None:
        if self._revalidating:
            return
        self._revalidating = True
        spawn_supervised(self._revalidate(), name="session-revalidate")

    async def _revalidate(self) -> None:
        try:
            session = self.scheduler.session
            if session is None:
                return
            if await self.validator.validate(session.token, session.deployment_code):
                self._log.info("Session still valid after rejection, continuing sync")
                return
            self._log.warning("Session no longer valid, stopping sync")
            self.scheduler.stop()
            self.scheduler.disarm()
            clear_session(self.store)
            log_session_cleared(self._log, "session_expired")
        finally:
            self._revalidating = False

    def get_status(self) -> dict[str, Any]:
        session = self.scheduler.session or load_session(self.store)
        return {
            "decision": self._decision.value if self._decision else None,
            "deployment_code": session.deployment_code if session else None,
            "sync": self.scheduler.get_status(),
        }


def launch_in_background(agent: TrackerAgent, delay: float | None = None) -> asyncio.Task:
    """Start the agent without waiting for it.

    The caller proceeds immediately; startup failures are caught and
    logged by the task itself.
    """

    async def _start() -> None:
        await asyncio.sleep(agent.settings.startup_delay if delay is None else delay)
        try:
            logger.info("Initializing tracker agent in background")
            decision = await agent.start()
            logger.info("Background initialization completed: decision=%s", decision.value)
        except Exception as e:
            logger.error("Background initialization failed: %s", e)

    return spawn_supervised(_start(), name="agent-startup")
