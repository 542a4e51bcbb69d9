"""Lifecycle manager for generation jobs.

The manager is the only writer of the task registry. Each queued job gets one
asyncio runner that drains the job source for that job and funnels every
report through ``apply_update``. Because ``apply_update`` looks the id up on
every call, a runner whose task was deleted can keep running without its
reports ever reaching the registry again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing
from uuid import uuid4

from adstudio.models import (
    AD_TYPE_LABELS,
    AdType,
    GenerationTask,
    JobUpdate,
    ModelChoice,
    utc_now,
)
from adstudio.storage.registry import TaskRegistry
from adstudio.tasks.sources import JobSource

logger = logging.getLogger(__name__)

MIN_VERSIONS = 1
MAX_VERSIONS = 100


def clamp_version_count(count: int, *, upper: int = MAX_VERSIONS) -> int:
    return min(max(MIN_VERSIONS, int(count)), upper)


class TaskLifecycleManager:
    """Create, advance and delete generation jobs."""

    def __init__(
        self,
        *,
        job_source: JobSource,
        registry: TaskRegistry | None = None,
        max_versions: int = MAX_VERSIONS,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.job_source = job_source
        self.registry = registry or TaskRegistry()
        self.max_versions = min(max_versions, MAX_VERSIONS)
        self.on_change = on_change
        self._runners: dict[str, asyncio.Task[None]] = {}

    def list_tasks(self) -> tuple[GenerationTask, ...]:
        return self.registry.list()

    def get(self, task_id: str) -> GenerationTask | None:
        return self.registry.get(task_id)

    @property
    def active_runner_ids(self) -> tuple[str, ...]:
        return tuple(self._runners)

    def enqueue(self, count: int, ad_type: AdType, model: ModelChoice) -> list[GenerationTask]:
        """Queue ``count`` jobs (clamped to 1..100) and start one runner per job.

        Must be called from a running event loop.
        """
        total = clamp_version_count(count, upper=self.max_versions)
        created_at = utc_now()
        title = f"{AD_TYPE_LABELS[ad_type]} - {created_at.astimezone().strftime('%H:%M:%S')}"
        batch = [
            GenerationTask(
                task_id=str(uuid4()),
                title=title,
                ad_type=ad_type,
                model=model,
                status="queued",
                progress=0,
                created_at=created_at,
            )
            for _ in range(total)
        ]
        self.registry.insert_batch(batch)
        logger.info(
            "task event=enqueued count=%d requested=%s ad_type=%s model=%s",
            total,
            count,
            ad_type,
            model,
        )
        self._notify()

        for task in batch:
            runner = asyncio.create_task(self._run(task), name=f"generation-{task.task_id}")
            self._runners[task.task_id] = runner
        return batch

    def remove(self, task_id: str) -> bool:
        """Delete a task in any state. Unknown ids are a no-op."""
        removed = self.registry.delete(task_id)
        runner = self._runners.pop(task_id, None)
        if runner is not None and not runner.done():
            runner.cancel()
        if removed is None:
            return False
        logger.info("task event=removed task_id=%s status=%s", task_id, removed.status)
        self._notify()
        return True

    def apply_update(self, task_id: str, update: JobUpdate) -> bool:
        """Apply one job report. Returns False when the report was dropped.

        Reports are dropped for unknown (deleted) ids and for tasks that already
        reached a terminal state. Progress never moves backwards.
        """
        current = self.registry.get(task_id)
        if current is None:
            logger.debug("task event=update_dropped task_id=%s reason=unknown_task", task_id)
            return False
        if current.is_terminal:
            logger.debug(
                "task event=update_dropped task_id=%s reason=terminal status=%s",
                task_id,
                current.status,
            )
            return False

        if update.status == "failed":
            updated = current.model_copy(
                update={"status": "failed", "error": update.error or "Generation failed"}
            )
            logger.warning(
                "task event=failed task_id=%s progress=%s error=%s",
                task_id,
                current.progress,
                updated.error,
            )
        elif update.status == "completed":
            if not update.result_url:
                logger.warning(
                    "task event=update_dropped task_id=%s reason=completed_without_result",
                    task_id,
                )
                return False
            updated = current.model_copy(
                update={
                    "status": "completed",
                    "progress": 100,
                    "result_url": update.result_url,
                    "thumbnail_url": update.thumbnail_url,
                    "duration": update.duration,
                    "size": update.size,
                }
            )
            logger.info("task event=completed task_id=%s", task_id)
        else:
            previous = current.progress or 0
            reported = previous if update.progress is None else update.progress
            # 100 is reserved for completed tasks.
            progress = min(max(previous, reported), 99)
            updated = current.model_copy(update={"status": "generating", "progress": progress})

        self.registry.replace(updated)
        self._notify()
        return True

    async def wait_idle(self) -> None:
        """Wait until every runner has finished."""
        while self._runners:
            await asyncio.gather(*list(self._runners.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        runners = list(self._runners.values())
        self._runners.clear()
        for runner in runners:
            runner.cancel()
        await asyncio.gather(*runners, return_exceptions=True)

    async def _run(self, task: GenerationTask) -> None:
        try:
            async with aclosing(self.job_source.track(task)) as updates:
                async for update in updates:
                    if task.task_id not in self.registry:
                        # Deleted while the job was in flight.
                        return
                    self.apply_update(task.task_id, update)
            current = self.registry.get(task.task_id)
            if current is not None and not current.is_terminal:
                logger.warning(
                    "task event=source_exhausted task_id=%s status=%s progress=%s",
                    task.task_id,
                    current.status,
                    current.progress,
                )
                self.apply_update(
                    task.task_id,
                    JobUpdate(status="failed", error="Job source ended without a result"),
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.apply_update(task.task_id, JobUpdate(status="failed", error=str(exc)))
        finally:
            if self._runners.get(task.task_id) is asyncio.current_task():
                del self._runners[task.task_id]

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
