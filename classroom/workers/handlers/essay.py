from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from classroom.domain.contracts import CapabilityProvider, JobHandler, UnitSplitter
from classroom.domain.decoding import decode_essay_response
from classroom.domain.dto import ProviderRequest
from classroom.domain.instructions import render_prompt
from classroom.domain.models import ArtifactHandle, Capability, JobKind, JobPlan, JobStatus, UnitResult
from classroom.domain.scoring import EssayGrade, essay_grade, placeholder_essay, tabulate_essays
from classroom.domain.splitting import ImageBatchSplitter
from classroom.workers.handlers.deps import HandlerDeps
from classroom.workers.handlers.grading import image_media_type

DEFAULT_MAX_SCORE = 10.0
DEFAULT_RUBRIC = "Clarity, quality of argument, grammar and adherence to the topic."


@dataclass(frozen=True)
class EssayGradingHandler(JobHandler):
    deps: HandlerDeps
    splitter: UnitSplitter = field(default_factory=ImageBatchSplitter)
    kind: str = JobKind.ESSAY_GRADING
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
        max_score = _max_score(plan)
        template = self.deps.instructions.essay_grading
        prompt = render_prompt(
            template=template.user_template,
            inputs={"max_score": _format_score(max_score), "rubric": plan.options.get("rubric") or DEFAULT_RUBRIC},
        )
        result = await provider.invoke(
            ProviderRequest(
                instructions=template.system,
                text=prompt,
                payload=self.deps.store.read_bytes(unit),
                media_type=image_media_type(unit.name),
                options={"task": "essay", "json": True, "temperature": 0, "max_score": max_score},
            )
        )
        score, feedback = decode_essay_response(result.text)
        return essay_grade(unit=unit.name, score=score, max_score=max_score, feedback=feedback)

    def placeholder(self, unit: ArtifactHandle, *, plan: JobPlan, code: str, detail: str) -> object:
        return placeholder_essay(unit=unit.name, max_score=_max_score(plan), detail=f"{code}: {detail}")

    def aggregate(self, results: Sequence[UnitResult], *, plan: JobPlan) -> dict[str, object]:
        return {
            "max_score": _max_score(plan),
            "essays": [_grade(item).to_dict() for item in results],
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
        return tabulate_essays([_grade(item) for item in results])


def _max_score(plan: JobPlan) -> float:
    value = plan.options.get("max_score", DEFAULT_MAX_SCORE)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError("max_score must be a positive number")
    return float(value)


def _format_score(value: float) -> str:
    return str(int(value)) if value.is_integer() else str(value)


def _grade(item: UnitResult) -> EssayGrade:
    if not isinstance(item.value, EssayGrade):
        raise TypeError(f"unit {item.unit_name} has no essay grade")
    return item.value
