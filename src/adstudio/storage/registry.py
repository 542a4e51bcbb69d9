"""In-memory registry of generation tasks, newest first."""

from __future__ import annotations

from collections.abc import Iterable

from adstudio.models import GenerationTask


class TaskRegistry:
    """Ordered mapping of task id to task record.

    Records are immutable; every change swaps in a new record or a new mapping,
    so a list handed out earlier never changes underneath its reader.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, GenerationTask] = {}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> GenerationTask | None:
        return self._tasks.get(task_id)

    def list(self) -> tuple[GenerationTask, ...]:
        return tuple(self._tasks.values())

    def insert_batch(self, tasks: Iterable[GenerationTask]) -> None:
        """Put a whole batch ahead of the existing tasks in one swap."""
        batch = {task.task_id: task for task in tasks}
        duplicates = batch.keys() & self._tasks.keys()
        if duplicates:
            raise KeyError(f"Tasks already registered: {sorted(duplicates)}")
        self._tasks = {**batch, **self._tasks}

    def replace(self, task: GenerationTask) -> None:
        if task.task_id not in self._tasks:
            raise KeyError(f"Task {task.task_id} does not exist")
        self._tasks[task.task_id] = task

    def delete(self, task_id: str) -> GenerationTask | None:
        return self._tasks.pop(task_id, None)
