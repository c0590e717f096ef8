"""Engine module for sync scheduling and agent orchestration."""

from nexus.engine.agent import TrackerAgent, launch_in_background
from nexus.engine.scheduler import SyncScheduler, SyncState
from nexus.engine.supervisor import spawn_supervised

__all__ = [
    "SyncScheduler",
    "SyncState",
    "TrackerAgent",
    "launch_in_background",
    "spawn_supervised",
]
