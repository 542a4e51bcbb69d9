"""Conversation workflow and workspace view selection."""

from adstudio.workflow.machine import WorkflowMachine
from adstudio.workflow.view import ViewSelector

__all__ = [
    "ViewSelector",
    "WorkflowMachine",
]
