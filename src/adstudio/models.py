"""Pydantic models shared across the workflow, task manager, exporter and API.

Terms used in this file:
- Turn: one message in the conversation history (user brief or assistant spec).
- Actionable turn: an assistant specification that can be approved to start jobs.
- Snapshot: an immutable point-in-time view handed to whatever renders the studio.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

AdType = Literal["text_poster", "ecommerce"]
ModelChoice = Literal["seedance", "veo3"]
Language = Literal["zh", "en"]
Role = Literal["user", "assistant"]

# Generation job lifecycle states used by the registry + API responses.
TaskStatus = Literal["queued", "generating", "completed", "failed"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

ViewName = Literal["library", "document", "parsing"]
WorkflowPhase = Literal["idle", "parsing", "awaiting_confirmation"]
ExportOutcome = Literal["skipped", "rejected", "succeeded", "failed"]

AD_TYPE_LABELS: dict[str, str] = {
    "text_poster": "Text Poster Ad",
    "ecommerce": "E-commerce Ad",
}


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Attachment(_Frozen):
    """A user-selected media reference waiting to be sent with the next brief."""

    attachment_id: str
    name: str
    locator: str
    created_at: datetime = Field(default_factory=utc_now)


class ConversationTurn(_Frozen):
    """One entry of the append-only conversation history."""

    turn_id: str
    role: Role
    content: str
    ad_type: AdType | None = None
    model: ModelChoice | None = None
    # Locators of the attachments sent with a user turn.
    attachments: tuple[str, ...] = ()
    # True when this assistant turn is a specification awaiting confirmation.
    actionable: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class WorkflowState(_Frozen):
    """Current phase of the conversation workflow."""

    phase: WorkflowPhase = "idle"
    # Present only while awaiting confirmation.
    specification: ConversationTurn | None = None

    @model_validator(mode="after")
    def _specification_matches_phase(self) -> WorkflowState:
        if (self.phase == "awaiting_confirmation") != (self.specification is not None):
            raise ValueError("specification must be set exactly when awaiting confirmation")
        return self


class GenerationTask(_Frozen):
    """One simulated video generation job."""

    task_id: str
    title: str
    ad_type: AdType
    model: ModelChoice
    status: TaskStatus = "queued"
    progress: int | None = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=utc_now)
    # Completion artifacts.
    result_url: str | None = None
    duration: str | None = None
    size: str | None = None
    thumbnail_url: str | None = None
    # Failure reason reported by the job source.
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @model_validator(mode="after")
    def _status_matches_progress(self) -> GenerationTask:
        if self.status == "completed" and (self.progress != 100 or not self.result_url):
            raise ValueError("completed tasks need progress 100 and a result_url")
        if self.status != "completed" and self.progress == 100 and self.result_url:
            raise ValueError("only completed tasks may carry progress 100 with a result")
        if self.status == "queued" and self.progress not in (0, None):
            raise ValueError("queued tasks cannot report progress")
        return self


class JobUpdate(_Frozen):
    """A single status report for one job, from a simulation or a real backend."""

    status: Literal["generating", "completed", "failed"]
    progress: int | None = Field(default=None, ge=0, le=100)
    result_url: str | None = None
    duration: str | None = None
    size: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None


class ExportResult(_Frozen):
    """Outcome of one aggregate export request."""

    outcome: ExportOutcome
    exported_task_ids: tuple[str, ...] = ()
    error: str | None = None


class StudioSnapshot(_Frozen):
    """Everything the rendering layer needs after a state transition."""

    version: int
    workflow: WorkflowState
    tasks: tuple[GenerationTask, ...]
    active_view: ViewName
    is_exporting: bool
    history: tuple[ConversationTurn, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    last_error: str | None = None
