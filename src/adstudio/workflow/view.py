"""Active workspace panel."""

from __future__ import annotations

import logging

from adstudio.models import ViewName

logger = logging.getLogger(__name__)

VIEW_FOR_PHASE: dict[str, ViewName] = {
    "parsing": "parsing",
    "awaiting_confirmation": "document",
    "idle": "library",
}


class ViewSelector:
    """Tracks the one visible workspace panel.

    Only workflow transitions call ``show``; the latest call wins. Task
    progress and completion never reach this object.
    """

    def __init__(self, initial: ViewName = "library") -> None:
        self._active: ViewName = initial

    @property
    def active(self) -> ViewName:
        return self._active

    def show(self, view: ViewName, *, reason: str) -> None:
        if view != self._active:
            logger.debug("view event=switch from=%s to=%s reason=%s", self._active, view, reason)
        self._active = view
