"""Job sources that report the progress of one generation job.

A job source stands where a real video backend's status poller would: it is
handed a freshly queued task and yields status reports until the job is done.
The lifecycle manager applies whatever it yields; a source never touches the
registry itself.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncGenerator
from typing import Protocol

from adstudio.config.settings import Settings
from adstudio.errors import TaskFailure
from adstudio.models import GenerationTask, JobUpdate

logger = logging.getLogger(__name__)

SAMPLE_RESULT_URL = "https://sample-videos.com/video123/mp4/720/big_buck_bunny_720p_1mb.mp4"


class JobSource(Protocol):
    """Produces status reports for a single job."""

    def track(self, task: GenerationTask) -> AsyncGenerator[JobUpdate, None]: ...


class SimulatedJobSource:
    """Random-walk stand-in for a video generation backend.

    Waits a random start delay, reports ``generating`` at a small progress,
    then advances by random increments on a fixed cadence until it reaches 100.
    ``failure_probability`` is the fault-injection knob: on each tick the
    simulated upstream may raise ``TaskFailure`` instead of advancing.
    """

    def __init__(
        self,
        *,
        start_delay_max_s: float = 2.0,
        tick_interval_s: float = 1.5,
        initial_progress: int = 5,
        step_min: int = 2,
        step_max: int = 21,
        failure_probability: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self.start_delay_max_s = start_delay_max_s
        self.tick_interval_s = tick_interval_s
        self.initial_progress = initial_progress
        self.step_min = step_min
        self.step_max = step_max
        self.failure_probability = failure_probability
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings) -> SimulatedJobSource:
        return cls(
            start_delay_max_s=settings.start_delay_max_s,
            tick_interval_s=settings.tick_interval_s,
            initial_progress=settings.initial_progress,
            step_min=settings.progress_step_min,
            step_max=settings.progress_step_max,
            failure_probability=settings.failure_probability,
        )

    async def track(self, task: GenerationTask) -> AsyncGenerator[JobUpdate, None]:
        await asyncio.sleep(self._rng.random() * self.start_delay_max_s)
        progress = self.initial_progress
        yield JobUpdate(status="generating", progress=progress)

        while True:
            await asyncio.sleep(self.tick_interval_s)
            if self.failure_probability and self._rng.random() < self.failure_probability:
                logger.debug(
                    "simulation event=fault_injected task_id=%s progress=%d",
                    task.task_id,
                    progress,
                )
                raise TaskFailure("Simulated upstream generation error", task_id=task.task_id)
            progress += self._rng.randint(self.step_min, self.step_max)
            if progress >= 100:
                yield JobUpdate(
                    status="completed",
                    progress=100,
                    result_url=SAMPLE_RESULT_URL,
                    thumbnail_url=f"https://picsum.photos/seed/{task.task_id}/640/360",
                    duration="00:15",
                    size="2.4 MB",
                )
                return
            yield JobUpdate(status="generating", progress=progress)
