"""
Bridge Runtime Supervisor

Owns the lifecycle of the bridge runtime.

Responsibilities:
- start the Discord client
- run the LFG expiry sweep once ready
- perform graceful shutdown

IMPORTANT:
- MUST be started by core.bridge_app
- MUST NOT create its own event loop
- MUST NOT install signal handlers
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from shared.config.settings import BridgeSettings, load_settings
from shared.logging.logger import get_logger
from services.discord.client import BridgeClient
from services.discord.runtime.lifecycle import BridgeRuntimeLifecycle
from services.lobby.coordinator import LobbyCoordinator

log = get_logger("discord.supervisor")


class BridgeSupervisor:
    """
    Owns the bridge runtime lifecycle.

    Contract:
    - start() is awaitable
    - shutdown() is idempotent
    """

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        *,
        version: Optional[str] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self._settings = settings
        self._version = version
        self._client_factory = client_factory or BridgeClient
        self._client: Optional[Any] = None
        self._tasks: List[asyncio.Task] = []
        self._running: bool = False
        self._lifecycle = BridgeRuntimeLifecycle()

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def start(self):
        """
        Start the bridge runtime.
        """
        if self._running:
            log.warning("Bridge supervisor already running")
            return

        log.info("Starting bridge supervisor")

        settings = self._settings or load_settings()
        self._settings = settings
        self._client = self._client_factory(settings, version=self._version)
        self._lifecycle.mark_started()

        # --------------------------------------------------
        # Discord client main loop
        # --------------------------------------------------
        client_task = asyncio.create_task(self._client.run())
        self._tasks.append(client_task)

        # --------------------------------------------------
        # Post-ready: expiry sweep (supervisor-owned)
        # --------------------------------------------------
        async def _post_ready():
            await self._client.wait_until_ready()
            self._lifecycle.mark_ready()
            await self.run_sweeps(self._client.coordinator, settings.sweep_interval_seconds)

        self._tasks.append(asyncio.create_task(_post_ready()))

        self._running = True
        log.info("Bridge supervisor started")

    async def run_sweeps(self, coordinator: LobbyCoordinator, interval: float):
        """
        Fixed-interval expiry sweep. Each pass finishes before the next
        sleep starts, so passes never overlap.
        """
        log.info(f"LFG expiry sweep running every {interval:.0f}s")
        while True:
            try:
                await coordinator.expire_sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"LFG expiry sweep failed: {e}")
            self._lifecycle.mark_sweep()
            await asyncio.sleep(interval)

    # --------------------------------------------------
    # Shutdown
    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully shut down the bridge runtime.
        """
        if not self._running:
            return

        log.info("Shutting down bridge supervisor")

        # --------------------------------------------------
        # Stop Discord client first (cancels teardown timers)
        # --------------------------------------------------
        try:
            if self._client:
                await self._client.shutdown()
        except Exception as e:
            log.warning(f"Discord client shutdown error ignored: {e}")

        # --------------------------------------------------
        # Cancel remaining tasks
        # --------------------------------------------------
        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(
                *self._tasks,
                return_exceptions=True
            )

        self._tasks.clear()
        self._client = None
        self._running = False
        self._lifecycle.mark_stopped()

        log.info("Bridge supervisor shutdown complete")

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "tasks": self.task_count,
            "lifecycle": self._lifecycle.snapshot(),
        }
