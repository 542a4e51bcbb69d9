"""In-process stores for tasks and pending attachments."""

from adstudio.storage.attachments import AttachmentStore
from adstudio.storage.registry import TaskRegistry

__all__ = [
    "AttachmentStore",
    "TaskRegistry",
]
