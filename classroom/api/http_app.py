from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from classroom.api.handlers.activities import generate_activity_handler
from classroom.api.handlers.deps import ApiDeps
from classroom.api.handlers.jobs import get_job_status_handler, submit_job_handler
from classroom.api.schemas import (
    DispatcherMetrics,
    ErrorResponse,
    GenerateActivityRequest,
    GenerateActivityResponse,
    HealthResponse,
    JobStatusResponse,
    ReadyResponse,
    SubmitJobResponse,
)
from classroom.domain.dto import SubmitJobCommand
from classroom.domain.errors import (
    DomainValidationError,
    NoProviderAvailableError,
    ProviderError,
    ResponseDecodeError,
)
from classroom.domain.models import Capability, JobKind
from classroom.workers.dispatch import DispatcherStoppedError

SERVICE_NAME = "classroom-jobs"


def build_app(
    run_id: str,
    api_deps: ApiDeps | None = None,
    mode: str = "live",
) -> FastAPI:
    logger = logging.getLogger("runtime")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        del app
        logger.info("service started", extra={"service": SERVICE_NAME, "run_id": run_id})

        yield

        if api_deps is not None:
            await api_deps.dispatcher.shutdown()
        logger.info("service stopped", extra={"service": SERVICE_NAME, "run_id": run_id})

    app = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service=SERVICE_NAME, mode=mode)

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        state = api_deps.dispatcher.state
        return ReadyResponse(
            status="ready" if not state.stopped else "stopping",
            service=SERVICE_NAME,
            mode=mode,
            backends={
                capability.value: [provider.name for provider in api_deps.catalog.for_capability(capability)]
                for capability in Capability
            },
            dispatcher_metrics=DispatcherMetrics(
                stopped=state.stopped,
                in_flight=api_deps.dispatcher.in_flight,
                started_total=state.started_total,
                completed_total=state.completed_total,
                failed_total=state.failed_total,
                crashed_total=state.crashed_total,
                cancelled_total=state.cancelled_total,
            ),
        )

    @app.post(
        "/jobs",
        status_code=202,
        response_model=SubmitJobResponse,
        responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Jobs"],
    )
    async def submit_job(
        kind: str = Form(default=JobKind.TRANSCRIPTION.value),
        audio: UploadFile | None = File(default=None),
        images: list[UploadFile] | None = File(default=None),
        answer_key: str | None = Form(default=None),
        max_score: str | None = Form(default=None),
        rubric: str | None = Form(default=None),
        summarize: str | None = Form(default=None),
        max_sentences: str | None = Form(default=None),
        options: str | None = Form(default=None),
    ) -> SubmitJobResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        uploads = [audio] if audio is not None else []
        if kind != JobKind.TRANSCRIPTION:
            uploads = list(images or [])
        files: list[tuple[str, bytes]] = []
        for upload in uploads:
            files.append((upload.filename or "upload.bin", await upload.read()))
        try:
            return await submit_job_handler(
                cmd=SubmitJobCommand(
                    kind=kind,
                    files=tuple(files),
                    options={
                        "answer_key": answer_key,
                        "max_score": max_score,
                        "rubric": rubric,
                        "summarize": summarize,
                        "max_sentences": max_sentences,
                        "options": options,
                    },
                ),
                api_deps=api_deps,
            )
        except DomainValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DispatcherStoppedError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    @app.get(
        "/jobs/{job_id}",
        response_model=JobStatusResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Jobs"],
    )
    async def get_job_status(job_id: str) -> JobStatusResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        status = await get_job_status_handler(job_id=job_id, api_deps=api_deps)
        if status is None:
            raise HTTPException(status_code=404, detail="job not found")
        return status

    @app.post(
        "/activities",
        response_model=GenerateActivityResponse,
        responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Activities"],
    )
    async def generate_activity(request: GenerateActivityRequest) -> GenerateActivityResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        try:
            return await generate_activity_handler(request=request, api_deps=api_deps)
        except NoProviderAvailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except (ProviderError, ResponseDecodeError) as exc:
            logger.warning("activity generation failed", extra={"stage": "activity", "run_id": run_id})
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    return app
