"""Conversation workflow that gates job creation.

Phases:
- idle: waiting for a brief.
- parsing: one specification request is in flight; new briefs are refused.
- awaiting_confirmation: a specification is open for review and can be
  discarded or committed.

Every transition also picks the workspace view, so the view always follows
the most recent workflow event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from uuid import uuid4

from adstudio.clients.specification import SpecificationClient
from adstudio.errors import RequestFailure
from adstudio.models import (
    AdType,
    ConversationTurn,
    GenerationTask,
    Language,
    ModelChoice,
    WorkflowState,
)
from adstudio.storage.attachments import AttachmentStore
from adstudio.tasks.manager import TaskLifecycleManager
from adstudio.workflow.view import VIEW_FOR_PHASE, ViewSelector

logger = logging.getLogger(__name__)


class WorkflowMachine:
    """Owns the workflow state and the append-only conversation history."""

    def __init__(
        self,
        *,
        client: SpecificationClient,
        tasks: TaskLifecycleManager,
        view: ViewSelector,
        attachments: AttachmentStore,
        on_change: Callable[[], None] | None = None,
        language: Language = "zh",
        ad_type: AdType = "text_poster",
        model: ModelChoice = "veo3",
        max_prompt_chars: int = 500,
    ) -> None:
        self.client = client
        self.tasks = tasks
        self.view = view
        self.attachments = attachments
        self.on_change = on_change
        self.language: Language = language
        self.ad_type: AdType = ad_type
        self.model: ModelChoice = model
        self.max_prompt_chars = max_prompt_chars
        self.last_failure: RequestFailure | None = None
        self._state = WorkflowState()
        self._history: list[ConversationTurn] = []
        self._parse_task: asyncio.Task[ConversationTurn | None] | None = None

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def history(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._history)

    @property
    def last_error(self) -> str | None:
        return str(self.last_failure) if self.last_failure is not None else None

    @property
    def is_parsing(self) -> bool:
        return self._state.phase == "parsing"

    def set_preferences(
        self,
        *,
        ad_type: AdType | None = None,
        model: ModelChoice | None = None,
        language: Language | None = None,
    ) -> None:
        if ad_type is not None:
            self.ad_type = ad_type
        if model is not None:
            self.model = model
        if language is not None:
            self.language = language
        self._notify()

    def submit(
        self,
        text: str,
        *,
        ad_type: AdType | None = None,
        model: ModelChoice | None = None,
    ) -> asyncio.Task[ConversationTurn | None] | None:
        """Start parsing a brief.

        Returns the in-flight parse task, or None when the brief was refused
        (empty text or a parse already running). Refusals change nothing.
        Must be called from a running event loop.
        """
        asyncio.get_running_loop()
        content = text.strip()[: self.max_prompt_chars].strip()
        if not content:
            logger.debug("workflow event=submit_rejected reason=empty_text")
            return None
        if self.is_parsing:
            logger.debug("workflow event=submit_rejected reason=parse_in_flight")
            return None

        chosen_type = ad_type or self.ad_type
        chosen_model = model or self.model
        sent = self.attachments.clear()
        user_turn = ConversationTurn(
            turn_id=str(uuid4()),
            role="user",
            content=content,
            ad_type=chosen_type,
            model=chosen_model,
            attachments=tuple(item.locator for item in sent),
        )
        self._history.append(user_turn)
        self.last_failure = None
        self._transition(WorkflowState(phase="parsing"), reason="submit")
        logger.info(
            "workflow event=parse_started turn_id=%s ad_type=%s model=%s attachments=%d",
            user_turn.turn_id,
            chosen_type,
            chosen_model,
            len(sent),
        )
        self._parse_task = asyncio.create_task(
            self._parse(user_turn, language=self.language),
            name=f"parse-{user_turn.turn_id}",
        )
        return self._parse_task

    def discard(self) -> bool:
        if self._state.phase != "awaiting_confirmation":
            return False
        self._transition(WorkflowState(), reason="discard")
        return True

    def commit(
        self,
        version_count: int,
        *,
        ad_type: AdType | None = None,
        model: ModelChoice | None = None,
    ) -> list[GenerationTask]:
        """Approve the open specification and queue ``version_count`` jobs.

        Outside awaiting_confirmation this does nothing and returns an empty list.
        """
        spec = self._state.specification
        if self._state.phase != "awaiting_confirmation" or spec is None:
            logger.debug("workflow event=commit_ignored phase=%s", self._state.phase)
            return []
        created = self.tasks.enqueue(
            version_count,
            ad_type or spec.ad_type or self.ad_type,
            model or spec.model or self.model,
        )
        logger.info(
            "workflow event=committed turn_id=%s tasks=%d", spec.turn_id, len(created)
        )
        self._transition(WorkflowState(), reason="commit")
        return created

    def reopen(self, turn_id: str) -> bool:
        """Bring a past specification back for review. History is untouched."""
        if self.is_parsing:
            return False
        turn = next((item for item in self._history if item.turn_id == turn_id), None)
        if turn is None or not turn.actionable:
            return False
        self._transition(
            WorkflowState(phase="awaiting_confirmation", specification=turn),
            reason="reopen",
        )
        return True

    def show_library(self) -> None:
        self.view.show("library", reason="navigate")
        self._notify()

    async def shutdown(self) -> None:
        task = self._parse_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _parse(
        self, user_turn: ConversationTurn, *, language: Language
    ) -> ConversationTurn | None:
        try:
            content = await asyncio.to_thread(
                self.client.generate_specification,
                user_turn.content,
                user_turn.ad_type,
                user_turn.model,
                language,
            )
        except asyncio.CancelledError:
            self._transition(WorkflowState(), reason="parse_cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            self.last_failure = RequestFailure(
                f"Specification request failed: {exc}", turn_id=user_turn.turn_id
            )
            logger.warning(
                "workflow event=parse_failed turn_id=%s reason=%s", user_turn.turn_id, exc
            )
            self._transition(WorkflowState(), reason="parse_failed")
            return None

        spec_turn = ConversationTurn(
            turn_id=str(uuid4()),
            role="assistant",
            content=(content or "").strip() or "Done.",
            ad_type=user_turn.ad_type,
            model=user_turn.model,
            actionable=True,
        )
        self._history.append(spec_turn)
        logger.info(
            "workflow event=specification_ready turn_id=%s chars=%d",
            spec_turn.turn_id,
            len(spec_turn.content),
        )
        self._transition(
            WorkflowState(phase="awaiting_confirmation", specification=spec_turn),
            reason="specification_ready",
        )
        return spec_turn

    def _transition(self, state: WorkflowState, *, reason: str) -> None:
        self._state = state
        self.view.show(VIEW_FOR_PHASE[state.phase], reason=reason)
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
