from __future__ import annotations

from classroom.domain.contracts import JobHandler, UnitSplitter
from classroom.domain.models import JobKind
from classroom.domain.splitting import AudioSegmentSplitter
from classroom.workers.handlers.deps import HandlerDeps
from classroom.workers.handlers.essay import EssayGradingHandler
from classroom.workers.handlers.grading import SheetGradingHandler
from classroom.workers.handlers.transcription import TranscriptionHandler


def build_job_handler(kind: str, deps: HandlerDeps, *, audio_splitter: UnitSplitter | None = None) -> JobHandler:
    if kind == JobKind.TRANSCRIPTION:
        return TranscriptionHandler(deps=deps, splitter=audio_splitter or AudioSegmentSplitter())
    if kind == JobKind.GRADING:
        return SheetGradingHandler(deps=deps)
    if kind == JobKind.ESSAY_GRADING:
        return EssayGradingHandler(deps=deps)
    raise ValueError(f"No job handler for kind '{kind}'")


def build_job_handlers(deps: HandlerDeps, *, audio_splitter: UnitSplitter | None = None) -> dict[str, JobHandler]:
    return {kind: build_job_handler(kind, deps, audio_splitter=audio_splitter) for kind in JobKind}
