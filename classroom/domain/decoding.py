from __future__ import annotations

from collections.abc import Sequence
import json
import re

from classroom.domain.errors import ResponseDecodeError
from classroom.domain.scoring import SheetReading

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
_ANSWER_KEY_MARKER_RE = re.compile(r"\[\s*(?:ANSWER_KEY|GABARITO)\s*:\s*([^\]]*)\]\s*$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match is None:
        return text.strip()
    return match.group(1).strip()


def decode_json_object(text: str) -> dict[str, object]:
    """Parse a model reply that should hold one JSON object, tolerating fences and chatter."""
    body = strip_code_fences(text)
    try:
        loaded = json.loads(body)
    except json.JSONDecodeError:
        start = body.find("{")
        end = body.rfind("}")
        if start < 0 or end <= start:
            raise ResponseDecodeError("response is not valid JSON") from None
        try:
            loaded = json.loads(body[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ResponseDecodeError("response is not valid JSON") from exc
    if not isinstance(loaded, dict):
        raise ResponseDecodeError("response root must be JSON object")
    return loaded


def decode_sheet_response(text: str, answer_key: Sequence[str]) -> SheetReading:
    payload = decode_json_object(text)

    invalidated = payload.get("invalidated", False)
    if not isinstance(invalidated, bool):
        raise ResponseDecodeError("invalidated must be boolean")
    if invalidated:
        # An invalidated sheet scores zero whatever was read from it.
        return SheetReading(invalidated=True, marks=())

    answers_raw = payload.get("answers")
    if not isinstance(answers_raw, list):
        raise ResponseDecodeError("response must include answers array")
    if len(answers_raw) != len(answer_key):
        raise ResponseDecodeError(
            f"response has {len(answers_raw)} answers, answer key has {len(answer_key)}"
        )

    marks: list[tuple[str, ...]] = []
    for position, entry in enumerate(answers_raw, start=1):
        if not isinstance(entry, dict):
            raise ResponseDecodeError("answers entry must be object")
        question = entry.get("question", position)
        if not isinstance(question, int) or question != position:
            raise ResponseDecodeError(f"answers entry {position} is out of order")
        marked = entry.get("marked", [])
        if isinstance(marked, str):
            marked = [marked] if marked.strip() else []
        if not isinstance(marked, list) or not all(isinstance(item, str) for item in marked):
            raise ResponseDecodeError("answers entry marked must be list of strings")
        marks.append(tuple(marked))
    return SheetReading(invalidated=invalidated, marks=tuple(marks))


def decode_essay_response(text: str) -> tuple[float, str]:
    payload = decode_json_object(text)
    score = payload.get("score")
    feedback = payload.get("feedback")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ResponseDecodeError("score must be number")
    if not isinstance(feedback, str):
        raise ResponseDecodeError("feedback must be string")
    return float(score), feedback


def split_answer_key_marker(text: str) -> tuple[str, tuple[str, ...]]:
    """Separate the trailing ``[ANSWER_KEY: ...]`` line from generated activity text."""
    stripped = text.rstrip()
    match = _ANSWER_KEY_MARKER_RE.search(stripped)
    if match is None:
        return stripped, ()
    answers = tuple(item.strip() for item in match.group(1).split(",") if item.strip())
    return stripped[: match.start()].rstrip(), answers
