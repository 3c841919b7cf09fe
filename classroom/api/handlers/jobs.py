from __future__ import annotations

from dataclasses import replace
import logging

from classroom.api.handlers.deps import ApiDeps
from classroom.api.schemas import JobStatusResponse, SubmitJobResponse
from classroom.domain.dto import SubmitJobCommand
from classroom.domain.error_taxonomy import format_job_error
from classroom.domain.models import ArtifactHandle, JobKind, JobPlan
from classroom.domain.use_cases.jobs import validate_submission
from classroom.workers.dispatch import DispatcherStoppedError

COMPONENT_ID = "api.submit_job"
logger = logging.getLogger("runtime")


async def submit_job_handler(*, cmd: SubmitJobCommand, api_deps: ApiDeps) -> SubmitJobResponse:
    options = validate_submission(cmd)
    if api_deps.dispatcher.state.stopped:
        raise DispatcherStoppedError("service is shutting down")

    sources: list[ArtifactHandle] = []
    try:
        for index, (filename, payload) in enumerate(cmd.files):
            handle = api_deps.store.persist(payload, name=filename)
            sources.append(replace(handle, index=index))
    except OSError:
        for handle in sources:
            api_deps.store.delete(handle)
        raise

    # The registry entry exists before the response is sent, so a poll can never miss it.
    snapshot = await api_deps.registry.create(kind=cmd.kind, message="queued")
    plan = JobPlan(job_id=snapshot.job_id, kind=JobKind(cmd.kind), sources=tuple(sources), options=options)
    try:
        api_deps.dispatcher.spawn(snapshot.job_id, api_deps.pipeline.run(plan))
    except DispatcherStoppedError as exc:
        for handle in sources:
            api_deps.store.delete(handle)
        await api_deps.registry.fail(job_id=snapshot.job_id, error=format_job_error("internal_error", str(exc)))
        raise
    logger.info(
        "job accepted",
        extra={"job_id": snapshot.job_id, "kind": cmd.kind, "unit": str(len(sources))},
    )
    return SubmitJobResponse(job_id=snapshot.job_id, status=snapshot.status)


async def get_job_status_handler(*, job_id: str, api_deps: ApiDeps) -> JobStatusResponse | None:
    snapshot = await api_deps.registry.get(job_id=job_id)
    if snapshot is None:
        return None
    return JobStatusResponse(
        job_id=snapshot.job_id,
        kind=snapshot.kind,
        status=snapshot.status,
        progress=snapshot.progress,
        message=snapshot.message,
        result=snapshot.result,
        error=snapshot.error,
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
        transitions=list(snapshot.transitions),
    )
