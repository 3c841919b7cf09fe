from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from classroom.domain.errors import ProviderError

# Canonical error vocabulary for all pipeline stages.
ErrorCode = Literal[
    "validation_error",
    "split_failed",
    "provider_unavailable",
    "provider_transient",
    "provider_permanent",
    "response_decode_failed",
    "aggregate_failed",
    "artifact_missing",
    "internal_error",
]

# Allowed values for Job.error prefixes and unit placeholder codes.
CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "validation_error",
    "split_failed",
    "provider_unavailable",
    "provider_transient",
    "provider_permanent",
    "response_decode_failed",
    "aggregate_failed",
    "artifact_missing",
    "internal_error",
)

# Stage-specific allowlist. If a stage emits a code outside this map,
# it is normalized to internal_error by resolve_stage_error().
STAGE_ERROR_MAP: Mapping[str, frozenset[ErrorCode]] = {
    "split": frozenset(
        {
            "split_failed",
            "provider_unavailable",
            "artifact_missing",
            "validation_error",
            "internal_error",
        }
    ),
    "process": frozenset(
        {
            "provider_transient",
            "provider_permanent",
            "response_decode_failed",
            "artifact_missing",
            "internal_error",
        }
    ),
    "aggregate": frozenset(
        {
            "aggregate_failed",
            "internal_error",
        }
    ),
    "secondary": frozenset(
        {
            "provider_unavailable",
            "provider_transient",
            "provider_permanent",
            "response_decode_failed",
            "internal_error",
        }
    ),
}


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def resolve_stage_error(*, stage: str, code: str) -> ErrorCode:
    allowed = STAGE_ERROR_MAP.get(stage, frozenset({"internal_error"}))
    if code in allowed and is_canonical_error_code(code):
        return code  # type: ignore[return-value]
    return "internal_error"


def provider_error_code(exc: ProviderError) -> ErrorCode:
    if exc.kind == "permanent":
        return "provider_permanent"
    return "provider_transient"


def format_job_error(code: ErrorCode, detail: str) -> str:
    detail = " ".join(detail.split())
    if len(detail) > 300:
        detail = detail[:297] + "..."
    return f"{code}: {detail}" if detail else code
