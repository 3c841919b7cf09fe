from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from classroom.domain.contracts import CapabilityProvider, JobHandler, UnitSplitter
from classroom.domain.dto import ProviderRequest
from classroom.domain.error_taxonomy import format_job_error
from classroom.domain.instructions import render_prompt
from classroom.domain.models import ArtifactHandle, Capability, JobKind, JobPlan, JobStatus, UnitResult
from classroom.domain.normalization import join_segments, rewrite_question_markers, to_unified_text
from classroom.workers.handlers.deps import HandlerDeps

DEFAULT_SUMMARY_SENTENCES = 5


@dataclass(frozen=True)
class TranscriptionHandler(JobHandler):
    """Audio chunks -> speech-to-text -> ordered transcript, optionally summarized."""

    deps: HandlerDeps
    splitter: UnitSplitter
    kind: str = JobKind.TRANSCRIPTION
    capability: str = Capability.TRANSCRIPTION
    secondary_status: str = JobStatus.SUMMARIZING
    secondary_field: str = "summary"
    secondary_capability: str | None = Capability.GENERATION

    async def process_unit(
        self,
        unit: ArtifactHandle,
        *,
        provider: CapabilityProvider,
        plan: JobPlan,
    ) -> object:
        instructions = self.deps.instructions
        options: dict[str, object] = {}
        if instructions.transcription_language:
            options["language"] = instructions.transcription_language
        result = await provider.invoke(
            ProviderRequest(
                instructions=instructions.transcription_hint,
                payload=self.deps.store.read_bytes(unit),
                media_type="audio/flac",
                options=options,
            )
        )
        return to_unified_text(text=result.text)

    def placeholder(self, unit: ArtifactHandle, *, plan: JobPlan, code: str, detail: str) -> object:
        return f"[segment {unit.index + 1} unavailable: {code}]"

    def aggregate(self, results: Sequence[UnitResult], *, plan: JobPlan) -> dict[str, object]:
        transcript = rewrite_question_markers(
            text=join_segments(str(item.value) for item in results),
            rules=self.deps.instructions.question_markers,
        )
        aggregate: dict[str, object] = {
            "transcription": transcript,
            "summary": None,
            "segments": [
                {
                    "index": item.index,
                    "unit": item.unit_name,
                    "ok": item.ok,
                    "text": item.value,
                    "error_code": item.error_code,
                }
                for item in results
            ],
        }
        if _summarize(plan) and not any(item.ok for item in results):
            # Placeholders only; there is nothing real to summarize.
            aggregate["summary_error"] = format_job_error("provider_unavailable", "no segment was transcribed")
        return aggregate

    def wants_secondary(self, aggregate: dict[str, object], *, plan: JobPlan) -> bool:
        if not _summarize(plan) or "summary_error" in aggregate:
            return False
        return bool(aggregate.get("transcription"))

    async def secondary(
        self,
        aggregate: dict[str, object],
        *,
        results: Sequence[UnitResult],
        plan: JobPlan,
        provider: CapabilityProvider | None,
    ) -> object:
        if provider is None:
            raise ValueError("summary requires a generation backend")
        template = self.deps.instructions.summary
        prompt = render_prompt(
            template=template.user_template,
            inputs={
                "max_sentences": plan.options.get("max_sentences", DEFAULT_SUMMARY_SENTENCES),
                "transcription": aggregate["transcription"],
            },
        )
        result = await provider.invoke(
            ProviderRequest(
                instructions=template.system,
                text=prompt,
                options={"task": "summary", "temperature": 0.2},
            )
        )
        return to_unified_text(text=result.text)


def _summarize(plan: JobPlan) -> bool:
    return bool(plan.options.get("summarize", True))
