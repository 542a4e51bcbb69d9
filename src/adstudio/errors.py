"""Error taxonomy shared by the workflow, task and export layers.

Every error stays local to the operation that raised it. The orchestrator
records or returns them; none of them are allowed to stop the event loop.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for all ad studio errors."""


class ValidationRejection(StudioError):
    """User input was refused before any state changed."""


class RequestFailure(StudioError):
    """The specification request was rejected or errored."""

    def __init__(self, message: str, *, turn_id: str | None = None) -> None:
        super().__init__(message)
        self.turn_id = turn_id


class TaskFailure(StudioError):
    """A generation job reported an error upstream."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class ExportFailure(StudioError):
    """The aggregate export did not complete."""
