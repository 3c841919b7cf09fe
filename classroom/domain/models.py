from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


# Canonical job lifecycle states.
#
# Keep this enum synchronized with classroom/domain/lifecycle.py
# (ALLOWED_TRANSITIONS and TERMINAL_STATUSES).
class JobStatus(StrEnum):
    QUEUED = "queued"
    SPLITTING = "splitting"
    PROCESSING = "processing"
    AGGREGATING = "aggregating"
    SUMMARIZING = "summarizing"

    # Terminal states.
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(StrEnum):
    TRANSCRIPTION = "transcription"
    GRADING = "grading"
    ESSAY_GRADING = "essay_grading"


class Capability(StrEnum):
    TRANSCRIPTION = "transcription"
    GENERATION = "generation"
    VISION = "vision"


@dataclass(frozen=True)
class JobSnapshot:
    job_id: str
    kind: str
    status: str
    progress: float
    message: str | None
    result: dict[str, object] | None
    error: str | None
    created_at: datetime
    updated_at: datetime
    transitions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArtifactHandle:
    """One on-disk blob owned by a job (uploaded source or derived unit)."""

    ref: str
    path: str
    name: str
    index: int = 0


@dataclass(frozen=True)
class WorkspaceHandle:
    job_id: str
    path: str


@dataclass(frozen=True)
class UnitResult:
    index: int
    unit_name: str
    ok: bool
    value: object
    error_code: str | None = None
    detail: str = ""


@dataclass(frozen=True)
class JobPlan:
    """Everything a pipeline run needs besides the registry and providers."""

    job_id: str
    kind: JobKind
    sources: tuple[ArtifactHandle, ...]
    options: dict[str, object] = field(default_factory=dict)
