from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from classroom.domain.models import JobStatus


JOB_ID_PATTERN = r"^job_[0-9A-HJKMNP-TV-Z]{26}$"


class ErrorResponse(BaseModel):
    detail: str


class DispatcherMetrics(BaseModel):
    stopped: bool
    in_flight: int
    started_total: int
    completed_total: int
    failed_total: int
    crashed_total: int
    cancelled_total: int


class HealthResponse(BaseModel):
    status: str
    service: str
    mode: str


class ReadyResponse(BaseModel):
    status: str
    service: str
    mode: str
    backends: dict[str, list[str]]
    dispatcher_metrics: DispatcherMetrics


class SubmitJobResponse(BaseModel):
    job_id: str = Field(pattern=JOB_ID_PATTERN)
    status: JobStatus


class JobStatusResponse(BaseModel):
    job_id: str
    kind: str
    status: JobStatus
    progress: float = Field(ge=0, le=100)
    message: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    transitions: list[str]


class GenerateActivityRequest(BaseModel):
    text: str = Field(min_length=1, max_length=100_000)
    question_count: int = Field(default=5, ge=1, le=50)
    question_type: Literal["multiple_choice", "true_false", "open_ended"] = "multiple_choice"
    language: str = Field(default="en", min_length=2, max_length=32)
    difficulty: Literal["easy", "medium", "hard"] = "medium"


class GenerateActivityResponse(BaseModel):
    activity: str
    answers: list[str]
    backend: str
