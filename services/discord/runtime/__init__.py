"""
Bridge Runtime Package

Contained responsibilities:
- Runtime supervision (start / stop orchestration)
- Lifecycle state tracking
- The periodic LFG expiry sweep

IMPORTANT:
- Importing this package MUST NOT start the Discord client
- Importing this package MUST NOT create asyncio tasks
- All runtime execution is owned by BridgeSupervisor
"""

from services.discord.runtime.supervisor import BridgeSupervisor
from services.discord.runtime.lifecycle import BridgeRuntimeLifecycle

__all__ = [
    "BridgeSupervisor",
    "BridgeRuntimeLifecycle",
]
