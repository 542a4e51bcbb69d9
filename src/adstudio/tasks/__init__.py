"""Generation job lifecycle: registry writer, runners and job sources."""

from adstudio.tasks.manager import TaskLifecycleManager, clamp_version_count
from adstudio.tasks.sources import JobSource, SimulatedJobSource

__all__ = [
    "JobSource",
    "SimulatedJobSource",
    "TaskLifecycleManager",
    "clamp_version_count",
]
