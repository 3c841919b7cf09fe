from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import mimetypes

from classroom.domain.contracts import CapabilityProvider, JobHandler, UnitSplitter
from classroom.domain.decoding import decode_sheet_response
from classroom.domain.dto import ProviderRequest
from classroom.domain.instructions import render_prompt
from classroom.domain.models import ArtifactHandle, Capability, JobKind, JobPlan, JobStatus, UnitResult
from classroom.domain.scoring import GradeRecord, placeholder_grade, score_sheet, tabulate_sheets
from classroom.domain.splitting import ImageBatchSplitter
from classroom.workers.handlers.deps import HandlerDeps

DEFAULT_SHEET_OPTIONS = "A, B, C, D, E"


@dataclass(frozen=True)
class SheetGradingHandler(JobHandler):
    """Answer-sheet photos -> vision read of the marks -> locally scored records."""

    deps: HandlerDeps
    splitter: UnitSplitter = field(default_factory=ImageBatchSplitter)
    kind: str = JobKind.GRADING
    capability: str = Capability.VISION
    secondary_status: str = JobStatus.AGGREGATING
    secondary_field: str = "class_summary"
    secondary_capability: str | None = None

    async def process_unit(
        self,
        unit: ArtifactHandle,
        *,
        provider: CapabilityProvider,
        plan: JobPlan,
    ) -> object:
        answer_key = _answer_key(plan)
        template = self.deps.instructions.sheet_grading
        prompt = render_prompt(
            template=template.user_template,
            inputs={
                "question_count": len(answer_key),
                "options": plan.options.get("options", DEFAULT_SHEET_OPTIONS),
            },
        )
        result = await provider.invoke(
            ProviderRequest(
                instructions=template.system,
                text=prompt,
                payload=self.deps.store.read_bytes(unit),
                media_type=image_media_type(unit.name),
                options={"task": "sheet", "json": True, "temperature": 0, "question_count": len(answer_key)},
            )
        )
        reading = decode_sheet_response(result.text, answer_key)
        return score_sheet(reading, answer_key, unit=unit.name)

    def placeholder(self, unit: ArtifactHandle, *, plan: JobPlan, code: str, detail: str) -> object:
        return placeholder_grade(unit=unit.name, answer_key=_answer_key(plan), detail=f"{code}: {detail}")

    def aggregate(self, results: Sequence[UnitResult], *, plan: JobPlan) -> dict[str, object]:
        return {
            "answer_key": list(_answer_key(plan)),
            "sheets": [_record(item).to_dict() for item in results],
            "class_summary": None,
        }

    def wants_secondary(self, aggregate: dict[str, object], *, plan: JobPlan) -> bool:
        return True

    async def secondary(
        self,
        aggregate: dict[str, object],
        *,
        results: Sequence[UnitResult],
        plan: JobPlan,
        provider: CapabilityProvider | None,
    ) -> object:
        return tabulate_sheets([_record(item) for item in results])


def image_media_type(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    if guessed and guessed.startswith("image/"):
        return guessed
    return "image/jpeg"


def _answer_key(plan: JobPlan) -> tuple[str, ...]:
    answer_key = plan.options.get("answer_key")
    if not isinstance(answer_key, tuple) or not answer_key:
        raise ValueError("grading plan requires a parsed answer_key")
    return answer_key


def _record(item: UnitResult) -> GradeRecord:
    if not isinstance(item.value, GradeRecord):
        raise TypeError(f"unit {item.unit_name} has no grade record")
    return item.value
