"""
Bridge Runtime Lifecycle

Passive lifecycle state tracker owned by BridgeSupervisor and read by
diagnostics.

This module does NOT:
- Start asyncio tasks
- Own the Discord client
- Perform network I/O
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.logging.logger import get_logger

log = get_logger("discord.runtime.lifecycle")


class BridgeRuntimeLifecycle:
    def __init__(self):
        self._started_at: Optional[datetime] = None
        self._ready_at: Optional[datetime] = None
        self._stopped_at: Optional[datetime] = None
        self._last_sweep_at: Optional[datetime] = None
        self._sweeps: int = 0

    # --------------------------------------------------
    # Lifecycle Transitions
    # --------------------------------------------------

    def mark_started(self):
        if self._started_at is None:
            self._started_at = datetime.now(timezone.utc)
            log.info("Bridge runtime marked as started")

    def mark_ready(self):
        if self._ready_at is None:
            self._ready_at = datetime.now(timezone.utc)
            log.info("Bridge runtime marked as ready")

    def mark_stopped(self):
        self._stopped_at = datetime.now(timezone.utc)
        log.info("Bridge runtime marked as stopped")

    def mark_sweep(self):
        self._last_sweep_at = datetime.now(timezone.utc)
        self._sweeps += 1

    # --------------------------------------------------
    # Introspection
    # --------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "ready_at": self._ready_at.isoformat() if self._ready_at else None,
            "stopped_at": self._stopped_at.isoformat() if self._stopped_at else None,
            "last_sweep_at": self._last_sweep_at.isoformat() if self._last_sweep_at else None,
            "sweeps": self._sweeps,
        }

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def ready(self) -> bool:
        return self._ready_at is not None

    @property
    def stopped(self) -> bool:
        return self._stopped_at is not None
