from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProviderRequest:
    instructions: str
    text: str | None = None
    payload: bytes | None = None
    media_type: str | None = None
    options: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderResult:
    text: str
    raw_json: dict[str, object] | None
    latency_ms: int
    backend: str


@dataclass(frozen=True)
class SubmitJobCommand:
    kind: str
    files: tuple[tuple[str, bytes], ...]
    options: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmitJobResult:
    job_id: str
    status: str


@dataclass(frozen=True)
class GenerateActivityCommand:
    text: str
    question_count: int
    question_type: str
    language: str
    difficulty: str


@dataclass(frozen=True)
class GenerateActivityResult:
    activity: str
    answers: tuple[str, ...]
    backend: str
