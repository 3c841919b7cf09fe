from __future__ import annotations

from classroom.domain.dto import SubmitJobCommand
from classroom.domain.errors import DomainValidationError
from classroom.domain.models import JobKind
from classroom.domain.scoring import parse_answer_key

COMPONENT_ID = "domain.job.validate_submission"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
MIN_SUMMARY_SENTENCES = 1
MAX_SUMMARY_SENTENCES = 20


def validate_submission(cmd: SubmitJobCommand) -> dict[str, object]:
    """Check a submission before anything is persisted; return the job plan options."""
    try:
        kind = JobKind(cmd.kind)
    except ValueError:
        supported = ", ".join(item.value for item in JobKind)
        raise DomainValidationError(f"unsupported job kind '{cmd.kind}' (expected one of: {supported})") from None

    if not cmd.files:
        raise DomainValidationError("at least one file is required")
    for filename, payload in cmd.files:
        if not payload:
            raise DomainValidationError(f"file '{filename}' is empty")

    if kind == JobKind.TRANSCRIPTION:
        if len(cmd.files) != 1:
            raise DomainValidationError("transcription jobs take exactly one audio file")
        options: dict[str, object] = {"summarize": parse_flag(cmd.options.get("summarize"), default=True)}
        if cmd.options.get("max_sentences") not in (None, ""):
            options["max_sentences"] = parse_max_sentences(cmd.options["max_sentences"])
        return options

    if kind == JobKind.GRADING:
        raw_key = cmd.options.get("answer_key")
        if not isinstance(raw_key, str) or not raw_key.strip():
            raise DomainValidationError("answer_key is required for grading jobs")
        grading: dict[str, object] = {"answer_key": parse_answer_key(raw_key)}
        letters = cmd.options.get("options")
        if isinstance(letters, str) and letters.strip():
            grading["options"] = ", ".join(parse_answer_key(letters))
        return grading

    essay: dict[str, object] = {"max_score": parse_max_score(cmd.options.get("max_score"))}
    rubric = cmd.options.get("rubric")
    if isinstance(rubric, str) and rubric.strip():
        essay["rubric"] = rubric.strip()
    return essay


def parse_flag(value: object, *, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise DomainValidationError(f"invalid boolean value '{value}'")


def parse_max_score(value: object) -> float:
    if value is None or value == "":
        return 10.0
    try:
        parsed = float(str(value))
    except ValueError:
        raise DomainValidationError(f"max_score must be a number, got '{value}'") from None
    if not parsed > 0:
        raise DomainValidationError("max_score must be greater than zero")
    return parsed


def parse_max_sentences(value: object) -> int:
    try:
        parsed = int(str(value))
    except ValueError:
        raise DomainValidationError(f"max_sentences must be an integer, got '{value}'") from None
    if not MIN_SUMMARY_SENTENCES <= parsed <= MAX_SUMMARY_SENTENCES:
        raise DomainValidationError(
            f"max_sentences must be within [{MIN_SUMMARY_SENTENCES}, {MAX_SUMMARY_SENTENCES}]"
        )
    return parsed
