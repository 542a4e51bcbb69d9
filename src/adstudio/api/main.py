"""FastAPI app entrypoint for adstudio."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field

from adstudio.config.settings import Settings, get_settings
from adstudio.errors import ValidationRejection
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
from adstudio.studio import Studio

logger = logging.getLogger(__name__)


class SubmitBriefRequest(BaseModel):
    text: str = Field(min_length=1)
    ad_type: AdType | None = None
    model: ModelChoice | None = None


class CommitRequest(BaseModel):
    # Out-of-range counts are clamped, never rejected.
    version_count: int = 1


class PreferencesRequest(BaseModel):
    ad_type: AdType | None = None
    model: ModelChoice | None = None
    language: Language | None = None


class AttachmentFile(BaseModel):
    name: str = ""
    locator: str = Field(min_length=1)


class AddAttachmentsRequest(BaseModel):
    files: list[AttachmentFile] = Field(default_factory=list)


class ExportResponse(BaseModel):
    result: ExportResult
    state: StudioSnapshot


def create_app(
    *,
    studio: Studio | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    runtime_studio = studio or Studio(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.studio.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.studio = runtime_studio

    # Handlers are async so every studio mutation runs on the event loop thread.
    def _studio(request: Request) -> Studio:
        return request.app.state.studio

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/state", response_model=StudioSnapshot)
    async def state(request: Request) -> StudioSnapshot:
        return _studio(request).snapshot()

    @app.get("/history", response_model=list[ConversationTurn])
    async def history(request: Request) -> list[ConversationTurn]:
        return list(_studio(request).workflow.history)

    @app.put("/preferences", response_model=StudioSnapshot)
    async def update_preferences(payload: PreferencesRequest, request: Request) -> StudioSnapshot:
        current = _studio(request)
        current.set_preferences(
            ad_type=payload.ad_type, model=payload.model, language=payload.language
        )
        return current.snapshot()

    @app.post("/conversation", response_model=StudioSnapshot)
    async def submit_brief(payload: SubmitBriefRequest, request: Request) -> StudioSnapshot:
        current = _studio(request)
        parse = current.submit(payload.text, ad_type=payload.ad_type, model=payload.model)
        if parse is None:
            if current.workflow.is_parsing:
                raise HTTPException(status_code=409, detail="A brief is already being analyzed")
            raise HTTPException(status_code=422, detail="Brief text must not be empty")

        spec_turn = await parse
        if spec_turn is None:
            raise HTTPException(
                status_code=502,
                detail=current.workflow.last_error or "Specification request failed",
            )
        return current.snapshot()

    @app.post("/conversation/discard", response_model=StudioSnapshot)
    async def discard(request: Request) -> StudioSnapshot:
        current = _studio(request)
        current.discard()
        return current.snapshot()

    @app.post("/conversation/commit", response_model=list[GenerationTask])
    async def commit(payload: CommitRequest, request: Request) -> list[GenerationTask]:
        current = _studio(request)
        if current.workflow.state.phase != "awaiting_confirmation":
            raise HTTPException(status_code=409, detail="No specification awaiting confirmation")
        return current.commit(payload.version_count)

    @app.post("/conversation/turns/{turn_id}/reopen", response_model=StudioSnapshot)
    async def reopen(turn_id: str, request: Request) -> StudioSnapshot:
        current = _studio(request)
        if current.workflow.is_parsing:
            raise HTTPException(status_code=409, detail="A brief is already being analyzed")
        if not current.reopen(turn_id):
            raise HTTPException(status_code=404, detail="Specification not found")
        return current.snapshot()

    @app.post("/view/library", response_model=StudioSnapshot)
    async def show_library(request: Request) -> StudioSnapshot:
        current = _studio(request)
        current.show_library()
        return current.snapshot()

    @app.get("/attachments", response_model=list[Attachment])
    async def list_attachments(request: Request) -> list[Attachment]:
        return list(_studio(request).attachments.list())

    @app.post("/attachments", response_model=list[Attachment])
    async def add_attachments(
        payload: AddAttachmentsRequest, request: Request
    ) -> list[Attachment]:
        try:
            return _studio(request).add_attachments(
                [item.model_dump() for item in payload.files]
            )
        except ValidationRejection as exc:
            logger.info("attachments event=rejected reason=%s", exc)
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    @app.delete("/attachments/{attachment_id}", status_code=204)
    async def remove_attachment(attachment_id: str, request: Request) -> Response:
        _studio(request).remove_attachment(attachment_id)
        return Response(status_code=204)

    @app.get("/tasks", response_model=list[GenerationTask])
    async def list_tasks(request: Request) -> list[GenerationTask]:
        return list(_studio(request).tasks.list_tasks())

    @app.get("/tasks/{task_id}", response_model=GenerationTask)
    async def get_task(task_id: str, request: Request) -> GenerationTask:
        record = _studio(request).tasks.get(task_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.delete("/tasks/{task_id}", status_code=204)
    async def remove_task(task_id: str, request: Request) -> Response:
        _studio(request).remove_task(task_id)
        return Response(status_code=204)

    @app.post("/tasks/{task_id}/status", response_model=GenerationTask)
    async def report_status(task_id: str, payload: JobUpdate, request: Request) -> GenerationTask:
        current = _studio(request)
        if current.tasks.get(task_id) is None:
            raise HTTPException(status_code=404, detail="Task not found")
        if not current.report_job_update(task_id, payload):
            raise HTTPException(status_code=409, detail="Status update rejected")
        updated = current.tasks.get(task_id)
        if updated is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return updated

    @app.post("/exports", response_model=ExportResponse)
    async def export_all(request: Request) -> ExportResponse:
        current = _studio(request)
        result = await current.export_all()
        return ExportResponse(result=result, state=current.snapshot())

    return app


app = create_app()
