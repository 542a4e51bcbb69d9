"""Aggregate export of every completed generation job."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from adstudio.errors import ExportFailure
from adstudio.models import ExportResult, GenerationTask
from adstudio.tasks.manager import TaskLifecycleManager

logger = logging.getLogger(__name__)


class ExportSink(Protocol):
    """Moves finished videos somewhere the user can pick them up."""

    async def export(self, tasks: Sequence[GenerationTask]) -> None: ...


class SimulatedExportSink:
    """Pretends to package the videos; always succeeds after a delay."""

    def __init__(self, *, delay_s: float = 2.0) -> None:
        self.delay_s = delay_s

    async def export(self, tasks: Sequence[GenerationTask]) -> None:
        await asyncio.sleep(self.delay_s)


class ExportCoordinator:
    """Runs at most one aggregate export at a time."""

    def __init__(
        self,
        *,
        tasks: TaskLifecycleManager,
        sink: ExportSink,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.tasks = tasks
        self.sink = sink
        self.on_change = on_change
        self._exporting = False

    @property
    def is_exporting(self) -> bool:
        return self._exporting

    async def export_all(self) -> ExportResult:
        completed = [task for task in self.tasks.list_tasks() if task.status == "completed"]
        if not completed:
            logger.info("export event=skipped reason=no_completed_tasks")
            return ExportResult(outcome="skipped")
        if self._exporting:
            logger.info("export event=rejected reason=export_in_flight")
            return ExportResult(outcome="rejected")

        task_ids = tuple(task.task_id for task in completed)
        self._set_exporting(True)
        logger.info("export event=start tasks=%d", len(task_ids))
        try:
            await self.sink.export(completed)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            failure = exc if isinstance(exc, ExportFailure) else ExportFailure(str(exc))
            logger.error("export event=failed tasks=%d error=%s", len(task_ids), failure)
            return ExportResult(outcome="failed", error=str(failure))
        finally:
            self._set_exporting(False)

        logger.info("export event=succeeded tasks=%d", len(task_ids))
        return ExportResult(outcome="succeeded", exported_task_ids=task_ids)

    def _set_exporting(self, value: bool) -> None:
        self._exporting = value
        if self.on_change is not None:
            self.on_change()
