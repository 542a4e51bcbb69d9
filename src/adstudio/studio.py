"""Studio orchestrator: one object owning workflow, tasks, export and view.

All mutation happens on a single asyncio event loop in short synchronous
steps, so no locks are taken. After every state transition the studio builds
an immutable ``StudioSnapshot`` and hands it to each subscribed listener.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping

from adstudio.clients.specification import SpecificationClient, build_specification_client
from adstudio.config.settings import Settings, get_settings
from adstudio.export.coordinator import ExportCoordinator, ExportSink, SimulatedExportSink
from adstudio.models import (
    AdType,
    Attachment,
    ConversationTurn,
    ExportResult,
    GenerationTask,
    JobUpdate,
    Language,
    ModelChoice,
    StudioSnapshot,
)
from adstudio.storage.attachments import AttachmentStore
from adstudio.tasks.manager import TaskLifecycleManager
from adstudio.tasks.sources import JobSource, SimulatedJobSource
from adstudio.workflow.machine import WorkflowMachine
from adstudio.workflow.view import ViewSelector

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[StudioSnapshot], None]


class Studio:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client: SpecificationClient | None = None,
        job_source: JobSource | None = None,
        export_sink: ExportSink | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._listeners: list[SnapshotListener] = []
        self._version = 0

        self.view = ViewSelector()
        self.attachments = AttachmentStore(max_attachments=self.settings.max_attachments)
        self.tasks = TaskLifecycleManager(
            job_source=job_source or SimulatedJobSource.from_settings(self.settings),
            max_versions=self.settings.max_versions,
            on_change=self._emit,
        )
        self.exporter = ExportCoordinator(
            tasks=self.tasks,
            sink=export_sink or SimulatedExportSink(delay_s=self.settings.export_delay_s),
            on_change=self._emit,
        )
        self.workflow = WorkflowMachine(
            client=client or build_specification_client(self.settings),
            tasks=self.tasks,
            view=self.view,
            attachments=self.attachments,
            on_change=self._emit,
            language=self.settings.default_language,
            ad_type=self.settings.default_ad_type,
            model=self.settings.default_model,
            max_prompt_chars=self.settings.max_prompt_chars,
        )

    # Rendering layer

    def snapshot(self) -> StudioSnapshot:
        return StudioSnapshot(
            version=self._version,
            workflow=self.workflow.state,
            tasks=self.tasks.list_tasks(),
            active_view=self.view.active,
            is_exporting=self.exporter.is_exporting,
            history=self.workflow.history,
            attachments=self.attachments.list(),
            last_error=self.workflow.last_error,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Workflow commands

    def set_preferences(
        self,
        *,
        ad_type: AdType | None = None,
        model: ModelChoice | None = None,
        language: Language | None = None,
    ) -> None:
        self.workflow.set_preferences(ad_type=ad_type, model=model, language=language)

    def submit(
        self,
        text: str,
        *,
        ad_type: AdType | None = None,
        model: ModelChoice | None = None,
    ) -> asyncio.Task[ConversationTurn | None] | None:
        return self.workflow.submit(text, ad_type=ad_type, model=model)

    def discard(self) -> bool:
        return self.workflow.discard()

    def commit(self, version_count: int) -> list[GenerationTask]:
        return self.workflow.commit(version_count)

    def reopen(self, turn_id: str) -> bool:
        return self.workflow.reopen(turn_id)

    def show_library(self) -> None:
        self.workflow.show_library()

    # Attachments

    def add_attachments(self, files: Iterable[Mapping[str, str]]) -> list[Attachment]:
        added = self.attachments.add_files(files)
        self._emit()
        return added

    def remove_attachment(self, attachment_id: str) -> bool:
        removed = self.attachments.remove(attachment_id)
        if removed:
            self._emit()
        return removed

    # Tasks and export

    def remove_task(self, task_id: str) -> bool:
        return self.tasks.remove(task_id)

    def report_job_update(self, task_id: str, update: JobUpdate) -> bool:
        """Apply a status report pushed by an upstream job backend."""
        return self.tasks.apply_update(task_id, update)

    async def export_all(self) -> ExportResult:
        return await self.exporter.export_all()

    async def shutdown(self) -> None:
        await self.workflow.shutdown()
        await self.tasks.shutdown()

    def _emit(self) -> None:
        self._version += 1
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("snapshot listener failed version=%d", snapshot.version)
