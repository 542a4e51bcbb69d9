from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from adstudio.errors import RequestFailure, ValidationRejection
from adstudio.models import JobUpdate, StudioSnapshot
from adstudio.studio import Studio
from tests.doubles import SPEC_TEXT, FakeSpecificationClient, ScriptedJobSource, completed_update


def test_brief_to_committed_jobs_scenario(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio(job_source=ScriptedJobSource(hold_open=True))
    views: list[tuple[str, str]] = []
    studio.subscribe(lambda snap: views.append((snap.workflow.phase, snap.active_view)))

    async def scenario() -> tuple[list, list, StudioSnapshot, StudioSnapshot]:
        pre_existing = studio.tasks.enqueue(2, "ecommerce", "seedance")

        parse = studio.submit("banner ad for sneakers", ad_type="text_poster", model="veo3")
        assert parse is not None
        during = studio.snapshot()
        spec_turn = await parse
        assert spec_turn is not None
        awaiting = studio.snapshot()

        created = studio.commit(3)
        await studio.shutdown()
        return pre_existing, created, during, awaiting

    pre_existing, created, during, awaiting = asyncio.run(scenario())

    assert during.workflow.phase == "parsing"
    assert during.active_view == "parsing"

    assert awaiting.workflow.phase == "awaiting_confirmation"
    assert awaiting.active_view == "document"
    assert awaiting.workflow.specification.content == SPEC_TEXT
    assert awaiting.workflow.specification.actionable is True

    assert len(created) == 3
    assert all(task.status == "queued" for task in created)
    assert {(task.ad_type, task.model) for task in created} == {("text_poster", "veo3")}

    final = studio.snapshot()
    assert final.workflow.phase == "idle"
    assert final.active_view == "library"
    assert [task.task_id for task in final.tasks] == [
        task.task_id for task in created + pre_existing
    ]
    assert ("parsing", "parsing") in views
    assert ("awaiting_confirmation", "document") in views


def test_specification_request_receives_brief_and_preferences(
    make_studio: Callable[..., Studio], spec_client: FakeSpecificationClient
) -> None:
    studio = make_studio()
    studio.set_preferences(ad_type="ecommerce", model="seedance", language="en")

    async def scenario() -> None:
        await studio.submit("  new running shoes  ")

    asyncio.run(scenario())

    assert spec_client.calls == [("new running shoes", "ecommerce", "seedance", "en")]
    user_turn, spec_turn = studio.workflow.history
    assert user_turn.role == "user"
    assert user_turn.content == "new running shoes"
    assert spec_turn.role == "assistant"
    assert (spec_turn.ad_type, spec_turn.model) == ("ecommerce", "seedance")


def test_submit_while_parsing_has_no_effect(
    make_studio: Callable[..., Studio], spec_client: FakeSpecificationClient
) -> None:
    studio = make_studio()

    async def scenario() -> tuple[bool, int]:
        first = studio.submit("first brief")
        history_len = len(studio.workflow.history)
        second = studio.submit("second brief")
        assert len(studio.workflow.history) == history_len
        await first
        return second is None, history_len

    rejected, history_len = asyncio.run(scenario())

    assert rejected
    assert history_len == 1
    assert len(spec_client.calls) == 1
    assert [turn.content for turn in studio.workflow.history if turn.role == "user"] == [
        "first brief"
    ]


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_empty_submission_is_refused(make_studio: Callable[..., Studio], text: str) -> None:
    studio = make_studio()
    versions: list[int] = []
    studio.subscribe(lambda snap: versions.append(snap.version))

    async def scenario():
        return studio.submit(text)

    assert asyncio.run(scenario()) is None
    assert studio.workflow.history == ()
    assert studio.workflow.state.phase == "idle"
    assert versions == []


def test_long_brief_is_truncated(make_studio: Callable[..., Studio], fast_settings) -> None:
    studio = make_studio()

    async def scenario() -> None:
        await studio.submit("x" * (fast_settings.max_prompt_chars + 50))

    asyncio.run(scenario())

    assert len(studio.workflow.history[0].content) == fast_settings.max_prompt_chars


def test_request_failure_returns_to_idle_and_library(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio(client=FakeSpecificationClient(error=RuntimeError("quota exceeded")))

    async def scenario():
        return await studio.submit("banner ad for sneakers")

    assert asyncio.run(scenario()) is None

    snapshot = studio.snapshot()
    assert snapshot.workflow.phase == "idle"
    assert snapshot.active_view == "library"
    assert "quota exceeded" in snapshot.last_error
    # Only the user turn was recorded; no automatic retry.
    assert [turn.role for turn in snapshot.history] == ["user"]
    failure = studio.workflow.last_failure
    assert isinstance(failure, RequestFailure)
    assert failure.turn_id == snapshot.history[0].turn_id


def test_discard_then_reopen_keeps_history(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()

    async def scenario() -> None:
        await studio.submit("banner ad for sneakers")

    asyncio.run(scenario())
    spec_turn = studio.workflow.history[-1]

    assert studio.discard() is True
    assert studio.workflow.state.phase == "idle"
    assert studio.view.active == "library"
    assert studio.workflow.history[-1] == spec_turn

    assert studio.reopen(spec_turn.turn_id) is True
    assert studio.workflow.state.specification == spec_turn
    assert studio.view.active == "document"
    assert len(studio.workflow.history) == 2


def test_reopen_rejects_unknown_and_user_turns(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()

    async def scenario() -> None:
        await studio.submit("banner ad for sneakers")

    asyncio.run(scenario())
    studio.discard()
    user_turn = studio.workflow.history[0]

    assert studio.reopen("missing") is False
    assert studio.reopen(user_turn.turn_id) is False
    assert studio.workflow.state.phase == "idle"


def test_commit_is_the_only_way_to_create_tasks(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio(job_source=ScriptedJobSource(hold_open=True))

    async def scenario() -> tuple[list, list]:
        before_spec = studio.commit(3)
        await studio.submit("banner ad for sneakers")
        studio.discard()
        after_discard = studio.commit(3)
        await studio.shutdown()
        return before_spec, after_discard

    before_spec, after_discard = asyncio.run(scenario())

    assert before_spec == []
    assert after_discard == []
    assert studio.tasks.list_tasks() == ()


def test_task_completion_never_changes_the_view(make_studio: Callable[..., Studio]) -> None:
    gate = asyncio.Event()
    studio = make_studio(
        job_source=ScriptedJobSource(
            [JobUpdate(status="generating", progress=50), completed_update()], gate=gate
        )
    )

    async def scenario() -> None:
        await studio.submit("banner ad for sneakers")
        studio.commit(2)
        spec_turn = studio.workflow.history[-1]
        studio.reopen(spec_turn.turn_id)
        gate.set()
        await studio.tasks.wait_idle()

    asyncio.run(scenario())

    snapshot = studio.snapshot()
    assert [task.status for task in snapshot.tasks] == ["completed", "completed"]
    assert snapshot.active_view == "document"
    assert snapshot.workflow.phase == "awaiting_confirmation"


def test_latest_workflow_event_wins_the_view(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()

    async def scenario() -> None:
        parse = studio.submit("banner ad for sneakers")
        studio.show_library()
        assert studio.view.active == "library"
        await parse

    asyncio.run(scenario())

    assert studio.view.active == "document"


def test_attachments_are_sent_with_the_brief(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()
    added = studio.add_attachments(
        [
            {"name": "shoe.png", "locator": "blob:shoe"},
            {"locator": "https://cdn.example/logo.png"},
        ]
    )
    assert [item.name for item in added] == ["shoe.png", "logo.png"]

    async def scenario() -> None:
        await studio.submit("banner ad for sneakers")

    asyncio.run(scenario())

    assert studio.workflow.history[0].attachments == ("blob:shoe", "https://cdn.example/logo.png")
    assert studio.attachments.list() == ()


def test_attachment_limit_rejects_whole_batch(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()
    studio.add_attachments([{"locator": f"blob:{i}"} for i in range(8)])

    with pytest.raises(ValidationRejection):
        studio.add_attachments([{"locator": f"blob:extra-{i}"} for i in range(3)])

    assert len(studio.attachments.list()) == 8
    first = studio.attachments.list()[0]
    assert studio.remove_attachment(first.attachment_id) is True
    assert studio.remove_attachment(first.attachment_id) is False


def test_failing_listener_does_not_break_emission(make_studio: Callable[..., Studio]) -> None:
    studio = make_studio()
    received: list[StudioSnapshot] = []

    def broken(_: StudioSnapshot) -> None:
        raise RuntimeError("render crashed")

    studio.subscribe(broken)
    unsubscribe = studio.subscribe(received.append)

    async def scenario() -> None:
        await studio.submit("banner ad for sneakers")

    asyncio.run(scenario())
    unsubscribe()
    studio.discard()

    assert [snap.workflow.phase for snap in received] == ["parsing", "awaiting_confirmation"]
    versions = [snap.version for snap in received]
    assert versions == sorted(versions)
