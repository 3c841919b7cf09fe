from __future__ import annotations

from dataclasses import dataclass

from classroom.domain.models import JobKind, JobStatus


ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    JobStatus.QUEUED: {JobStatus.SPLITTING, JobStatus.FAILED},
    JobStatus.SPLITTING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.AGGREGATING, JobStatus.SUMMARIZING, JobStatus.FAILED},
    JobStatus.AGGREGATING: {JobStatus.SUMMARIZING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.SUMMARIZING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

TERMINAL_STATUSES: frozenset[str] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Interim progress never reaches 100 before the job is completed.
MAX_INTERIM_PROGRESS = 99.0


@dataclass(frozen=True)
class KindLifecycle:
    kind: str
    progress_cap: float
    split_progress: float = 5.0


KIND_LIFECYCLES: dict[str, KindLifecycle] = {
    JobKind.TRANSCRIPTION: KindLifecycle(kind=JobKind.TRANSCRIPTION, progress_cap=90.0),
    JobKind.GRADING: KindLifecycle(kind=JobKind.GRADING, progress_cap=95.0),
    JobKind.ESSAY_GRADING: KindLifecycle(kind=JobKind.ESSAY_GRADING, progress_cap=95.0),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def unit_progress(*, index: int, total: int, cap: float) -> float:
    if total <= 0:
        return 0.0
    value = (index + 1) / total * 100
    return round(min(value, cap, MAX_INTERIM_PROGRESS), 2)
