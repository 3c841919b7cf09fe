from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
import re
from typing import Literal

from classroom.domain.errors import DomainValidationError, ResponseDecodeError

QuestionStatus = Literal["answered", "ambiguous", "blank", "invalidated", "error"]

ESSAY_ERROR_SCORE = -1.0
_ANSWER_KEY_SPLIT_RE = re.compile(r"[\s,;|]+")


@dataclass(frozen=True)
class SheetReading:
    """What the provider saw on one sheet: the marked options per question."""

    invalidated: bool
    marks: tuple[tuple[str, ...], ...]


@dataclass(frozen=True)
class QuestionDetail:
    question: int
    is_correct: bool
    expected: str
    detected: str | None
    status: QuestionStatus


@dataclass(frozen=True)
class GradeRecord:
    unit: str
    grade: str
    correct: int
    total: int
    invalidated: bool
    details: tuple[QuestionDetail, ...]
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["details"] = [asdict(item) for item in self.details]
        return payload


@dataclass(frozen=True)
class EssayGrade:
    unit: str
    score: float
    max_score: float
    feedback: str
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def parse_answer_key(raw: str) -> tuple[str, ...]:
    values = tuple(item.upper() for item in _ANSWER_KEY_SPLIT_RE.split(raw.strip()) if item)
    if not values:
        raise DomainValidationError("answer key must contain at least one value")
    return values


def score_sheet(reading: SheetReading, answer_key: Sequence[str], *, unit: str) -> GradeRecord:
    if not reading.invalidated and len(reading.marks) != len(answer_key):
        raise ResponseDecodeError(
            f"sheet reports {len(reading.marks)} questions, answer key has {len(answer_key)}"
        )

    details: list[QuestionDetail] = []
    for number, expected in enumerate(answer_key, start=1):
        marked = reading.marks[number - 1] if number <= len(reading.marks) else ()
        letters = tuple(dict.fromkeys(letter.strip().upper() for letter in marked if letter.strip()))
        detected = letters[0] if len(letters) == 1 else None
        status: QuestionStatus
        if reading.invalidated:
            status = "invalidated"
        elif len(letters) > 1:
            status = "ambiguous"
        elif not letters:
            status = "blank"
        else:
            status = "answered"
        details.append(
            QuestionDetail(
                question=number,
                # Only a single legible mark on a valid sheet can earn the point.
                is_correct=status == "answered" and detected == expected.upper(),
                expected=expected,
                detected=detected if status != "ambiguous" else ",".join(letters),
                status=status,
            )
        )
    return _record(unit=unit, details=details, invalidated=reading.invalidated)


def placeholder_grade(*, unit: str, answer_key: Sequence[str], detail: str) -> GradeRecord:
    details = [
        QuestionDetail(question=number, is_correct=False, expected=expected, detected=None, status="error")
        for number, expected in enumerate(answer_key, start=1)
    ]
    return _record(unit=unit, details=details, invalidated=False, error=detail)


def grade_string(details: Sequence[QuestionDetail]) -> str:
    correct = sum(1 for item in details if item.is_correct)
    return f"{correct}/{len(details)}"


def essay_grade(*, unit: str, score: float, max_score: float, feedback: str) -> EssayGrade:
    bounded = max(0.0, min(float(score), float(max_score)))
    return EssayGrade(unit=unit, score=round(bounded, 2), max_score=float(max_score), feedback=feedback.strip())


def placeholder_essay(*, unit: str, max_score: float, detail: str) -> EssayGrade:
    return EssayGrade(
        unit=unit,
        score=ESSAY_ERROR_SCORE,
        max_score=float(max_score),
        feedback=f"This essay could not be graded automatically ({detail}). Please review it manually.",
        error=detail,
    )


def tabulate_sheets(records: Sequence[GradeRecord]) -> dict[str, object]:
    graded = [record for record in records if record.error is None]
    question_count = max((record.total for record in records), default=0)
    per_question = [
        sum(1 for record in graded if index < record.total and record.details[index].is_correct)
        for index in range(question_count)
    ]
    average = round(sum(record.correct for record in graded) / len(graded), 2) if graded else None
    return {
        "graded": len(graded),
        "failed": len(records) - len(graded),
        "average_correct": average,
        "per_question_correct": per_question,
    }


def tabulate_essays(grades: Sequence[EssayGrade]) -> dict[str, object]:
    graded = [grade for grade in grades if grade.error is None]
    average = round(sum(grade.score for grade in graded) / len(graded), 2) if graded else None
    return {
        "graded": len(graded),
        "failed": len(grades) - len(graded),
        "average_score": average,
    }


def _record(
    *,
    unit: str,
    details: Sequence[QuestionDetail],
    invalidated: bool,
    error: str | None = None,
) -> GradeRecord:
    # The provider never supplies the score; it is always derived from details.
    correct = sum(1 for item in details if item.is_correct)
    return GradeRecord(
        unit=unit,
        grade=grade_string(details),
        correct=correct,
        total=len(details),
        invalidated=invalidated,
        details=tuple(details),
        error=error,
    )
