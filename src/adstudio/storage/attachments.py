"""Pending attachments for the next brief."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from uuid import uuid4

from adstudio.errors import ValidationRejection
from adstudio.models import Attachment


class AttachmentStore:
    """Holds the media references the user picked for the message being written."""

    def __init__(self, *, max_attachments: int = 10) -> None:
        self.max_attachments = max_attachments
        self._items: list[Attachment] = []

    def add_files(self, files: Iterable[Mapping[str, str]]) -> list[Attachment]:
        """Add files given as ``{"name": ..., "locator": ...}`` mappings.

        The whole batch is refused when it would exceed the limit.
        """
        incoming = list(files)
        if len(self._items) + len(incoming) > self.max_attachments:
            raise ValidationRejection(
                f"At most {self.max_attachments} attachments are allowed per message"
            )
        added: list[Attachment] = []
        for item in incoming:
            locator = str(item.get("locator", "")).strip()
            if not locator:
                raise ValidationRejection("Attachment locator must not be empty")
            added.append(
                Attachment(
                    attachment_id=uuid4().hex[:9],
                    name=str(item.get("name") or locator.rsplit("/", 1)[-1]),
                    locator=locator,
                )
            )
        self._items.extend(added)
        return added

    def remove(self, attachment_id: str) -> bool:
        before = len(self._items)
        self._items = [item for item in self._items if item.attachment_id != attachment_id]
        return len(self._items) != before

    def list(self) -> tuple[Attachment, ...]:
        return tuple(self._items)

    def clear(self) -> tuple[Attachment, ...]:
        taken = tuple(self._items)
        self._items = []
        return taken
