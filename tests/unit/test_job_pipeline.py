from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from classroom.clients.stub import StubProvider, default_stub_reply
from classroom.domain.dto import ProviderRequest, ProviderResult
from classroom.domain.errors import ProviderError, SplitError
from classroom.domain.models import JobKind, JobPlan, JobStatus
from tests.unit.job_fakes import FakeSegmentRunner, build_test_pipeline


def _sheet(*marks: list[str], invalidated: bool = False) -> str:
    return json.dumps(
        {
            "invalidated": invalidated,
            "answers": [{"question": index, "marked": marked} for index, marked in enumerate(marks, start=1)],
        }
    )


class SlowProvider:
    name = "slow:backend"

    async def probe(self) -> None:
        return None

    async def invoke(self, request: ProviderRequest) -> ProviderResult:
        await asyncio.sleep(10)
        return ProviderResult(text="late", raw_json=None, latency_ms=10_000, backend=self.name)


@pytest.mark.unit
def test_transcription_keeps_unit_order_and_substitutes_placeholders(tmp_path: Path) -> None:
    speech = StubProvider(
        name="hf:whisper",
        script=["good morning", ProviderError("HTTP 429: slow down"), "question 1 what is mitosis"],
    )
    writer = StubProvider(name="openai:gpt-4o-mini", reply=default_stub_reply("generation"))
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech], "generation": [writer]},
        runner=FakeSegmentRunner(chunk_count=3),
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": True})
        return source, await pipeline.run(plan)

    source, snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert snapshot.progress == 100
    result = snapshot.result
    assert result is not None
    assert result["transcription"] == (
        "good morning\n\n[segment 2 unavailable: provider_transient]\n\nQuestion 1: what is mitosis"
    )
    assert [item["unit"] for item in result["segments"]] == ["chunk_000.flac", "chunk_001.flac", "chunk_002.flac"]
    assert [item["ok"] for item in result["segments"]] == [True, False, True]
    assert result["summary"] == "Stub summary."
    assert [call.payload for call in speech.calls] == [b"chunk-0", b"chunk-1", b"chunk-2"]
    assert snapshot.transitions == (
        "queued",
        "splitting",
        "processing",
        "aggregating",
        "summarizing",
        "completed",
    )
    assert not Path(source.path).exists()
    assert list((tmp_path / "jobs").iterdir()) == []


@pytest.mark.unit
def test_progress_is_monotonic_and_hits_100_only_on_completion(tmp_path: Path) -> None:
    speech = StubProvider(name="hf:whisper", reply=default_stub_reply("transcription"))
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech]},
        runner=FakeSegmentRunner(chunk_count=4),
    )

    async def _run() -> None:
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.wav")
        await pipeline.run(
            JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": False})
        )

    asyncio.run(_run())

    progress = [item.progress for item in registry.history]
    assert progress == sorted(progress)
    assert progress[-1] == 100
    assert all(item.progress < 100 for item in registry.history if item.status != JobStatus.COMPLETED)
    assert max(item.progress for item in registry.history[:-1]) == 90
    assert registry.history[-1].result is not None
    assert registry.history[-1].result["summary"] is None


@pytest.mark.unit
def test_split_failure_fails_job_and_removes_every_artifact(tmp_path: Path) -> None:
    speech = StubProvider(name="hf:whisper", reply=default_stub_reply("transcription"))
    runner = FakeSegmentRunner(chunk_count=3, error=SplitError("ffmpeg failed to segment audio"), fail_after=2)
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"transcription": [speech]}, runner=runner)

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"broken", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,))
        return source, await pipeline.run(plan)

    source, snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.FAILED
    assert snapshot.error == "split_failed: ffmpeg failed to segment audio"
    assert snapshot.result is None
    assert speech.calls == []
    assert not Path(source.path).exists()
    assert list((tmp_path / "jobs").iterdir()) == []
    assert list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.unit
def test_third_candidate_serves_every_unit_after_two_failed_probes(tmp_path: Path) -> None:
    down = [
        StubProvider(name="vision:a", probe_error=ProviderError("HTTP 503: overloaded")),
        StubProvider(name="vision:b", probe_error=ProviderError("HTTP 401: bad key", kind="permanent")),
    ]
    healthy = StubProvider(name="vision:c", reply=default_stub_reply("vision"))
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"vision": [*down, healthy]})

    async def _run():
        job_id = (await registry.create(kind="grading")).job_id
        sources = tuple(store.persist(b"img", name=f"sheet_{index}.png") for index in range(3))
        plan = JobPlan(job_id=job_id, kind=JobKind.GRADING, sources=sources, options={"answer_key": ("A", "B")})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert [provider.calls for provider in down] == [[], []]
    assert len(healthy.calls) == 3
    assert healthy.probes == 1


@pytest.mark.unit
def test_exhausted_backends_fail_the_job_with_one_error(tmp_path: Path) -> None:
    candidates = [
        StubProvider(name=f"vision:{index}", probe_error=ProviderError("down")) for index in range(1, 4)
    ]
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"vision": candidates})

    async def _run():
        job_id = (await registry.create(kind="essay_grading")).job_id
        source = store.persist(b"img", name="essay.jpg")
        plan = JobPlan(job_id=job_id, kind=JobKind.ESSAY_GRADING, sources=(source,), options={"max_score": 10.0})
        return source, await pipeline.run(plan)

    source, snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.FAILED
    assert snapshot.error == (
        "provider_unavailable: no backend available for vision: vision:1 (down); vision:2 (down); vision:3 (down)"
    )
    assert not Path(source.path).exists()


@pytest.mark.unit
def test_grading_scores_locally_and_keeps_failed_sheets_in_place(tmp_path: Path) -> None:
    vision = StubProvider(
        name="openai:gpt-4o",
        script=[
            _sheet(["B"], ["A"], ["D"]),
            "I could not read this sheet, sorry.",
            _sheet(["B"], ["A", "C"], []),
            _sheet(["B"], ["A"], ["D"], invalidated=True),
        ],
    )
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"vision": [vision]})

    async def _run():
        job_id = (await registry.create(kind="grading")).job_id
        sources = tuple(store.persist(b"img", name=f"student_{index}.jpg") for index in range(1, 5))
        plan = JobPlan(
            job_id=job_id,
            kind=JobKind.GRADING,
            sources=sources,
            options={"answer_key": ("B", "A", "D")},
        )
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    result = snapshot.result
    assert result is not None
    sheets = result["sheets"]
    assert [sheet["grade"] for sheet in sheets] == ["3/3", "0/3", "1/3", "0/3"]
    assert [len(sheet["details"]) for sheet in sheets] == [3, 3, 3, 3]
    assert sheets[1]["error"].startswith("response_decode_failed")
    assert sheets[3]["invalidated"] is True
    assert result["answer_key"] == ["B", "A", "D"]
    assert result["class_summary"] == {
        "graded": 3,
        "failed": 1,
        "average_correct": round(4 / 3, 2),
        "per_question_correct": [2, 1, 1],
    }
    assert "summarizing" not in snapshot.transitions
    assert vision.calls[0].options["question_count"] == 3


@pytest.mark.unit
def test_essay_grades_are_bounded_and_failures_use_the_sentinel(tmp_path: Path) -> None:
    vision = StubProvider(
        name="openai:gpt-4o",
        script=[
            json.dumps({"score": 14, "feedback": "Excellent structure."}),
            ProviderError("HTTP 400: image too large", kind="permanent"),
        ],
    )
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"vision": [vision]})

    async def _run():
        job_id = (await registry.create(kind="essay_grading")).job_id
        sources = tuple(store.persist(b"img", name=f"essay_{index}.png") for index in range(2))
        plan = JobPlan(
            job_id=job_id,
            kind=JobKind.ESSAY_GRADING,
            sources=sources,
            options={"max_score": 10.0, "rubric": "argument"},
        )
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    result = snapshot.result
    assert result is not None
    essays = result["essays"]
    assert [essay["score"] for essay in essays] == [10.0, -1.0]
    assert essays[1]["error"] == "provider_permanent: HTTP 400: image too large"
    assert "HTTP 400: image too large" in essays[1]["feedback"]
    assert result["class_summary"] == {"graded": 1, "failed": 1, "average_score": 10.0}
    assert "argument" in (vision.calls[0].text or "")


@pytest.mark.unit
def test_hung_unit_times_out_into_a_placeholder(tmp_path: Path) -> None:
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [SlowProvider()]},
        runner=FakeSegmentRunner(chunk_count=1),
        unit_timeout_seconds=0.05,
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": False})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert snapshot.result is not None
    assert snapshot.result["transcription"] == "[segment 1 unavailable: provider_transient]"


@pytest.mark.unit
def test_summary_failure_degrades_only_the_summary(tmp_path: Path) -> None:
    speech = StubProvider(name="hf:whisper", script=["the lesson starts now"])
    writer = StubProvider(name="openai:gpt-4o-mini", script=[ProviderError("HTTP 500: upstream", kind="transient")])
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech], "generation": [writer]},
        runner=FakeSegmentRunner(chunk_count=1),
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": True})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert snapshot.result is not None
    assert snapshot.result["transcription"] == "the lesson starts now"
    assert snapshot.result["summary"] is None
    assert snapshot.result["summary_error"] == "provider_transient: HTTP 500: upstream"


@pytest.mark.unit
def test_missing_summary_backend_still_completes(tmp_path: Path) -> None:
    speech = StubProvider(name="hf:whisper", script=["hello"])
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech], "generation": []},
        runner=FakeSegmentRunner(chunk_count=1),
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": True})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert snapshot.result is not None
    assert snapshot.result["summary_error"].startswith("provider_unavailable: no backend available for generation")


@pytest.mark.unit
def test_summary_is_skipped_when_no_segment_was_transcribed(tmp_path: Path) -> None:
    speech = StubProvider(
        name="hf:whisper",
        script=[ProviderError("HTTP 503: loading"), ProviderError("HTTP 503: loading")],
    )
    writer = StubProvider(name="openai:gpt-4o-mini", script=["A lecture about nothing."])
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech], "generation": [writer]},
        runner=FakeSegmentRunner(chunk_count=2),
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": True})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.status == JobStatus.COMPLETED
    assert snapshot.result is not None
    assert writer.calls == []
    assert snapshot.result["summary"] is None
    assert snapshot.result["summary_error"] == "provider_unavailable: no segment was transcribed"
    assert "summarizing" not in snapshot.transitions
    assert [segment["ok"] for segment in snapshot.result["segments"]] == [False, False]


@pytest.mark.unit
def test_invalidated_sheet_without_answers_counts_as_graded(tmp_path: Path) -> None:
    vision = StubProvider(
        name="openai:gpt-4o",
        script=[
            json.dumps({"invalidated": True, "answers": []}),
            _sheet(["B"], ["A"], ["C"]),
        ],
    )
    pipeline, registry, store = build_test_pipeline(tmp_path, candidates={"vision": [vision]})

    async def _run():
        job_id = (await registry.create(kind="grading")).job_id
        sources = tuple(store.persist(b"img", name=f"student_{index}.jpg") for index in range(1, 3))
        plan = JobPlan(
            job_id=job_id,
            kind=JobKind.GRADING,
            sources=sources,
            options={"answer_key": ("B", "A", "D")},
        )
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.result is not None
    sheets = snapshot.result["sheets"]
    assert sheets[0]["grade"] == "0/3"
    assert sheets[0]["invalidated"] is True
    assert sheets[0]["error"] is None
    assert [detail["status"] for detail in sheets[0]["details"]] == ["invalidated"] * 3
    assert snapshot.result["class_summary"] == {
        "graded": 2,
        "failed": 0,
        "average_correct": 1.0,
        "per_question_correct": [1, 1, 0],
    }


@pytest.mark.unit
def test_unexpected_key_error_is_not_reported_as_missing_artifact(tmp_path: Path) -> None:
    speech = StubProvider(name="hf:whisper", script=[KeyError("text")])
    pipeline, registry, store = build_test_pipeline(
        tmp_path,
        candidates={"transcription": [speech]},
        runner=FakeSegmentRunner(chunk_count=1),
    )

    async def _run():
        job_id = (await registry.create(kind="transcription")).job_id
        source = store.persist(b"lecture", name="lecture.mp3")
        plan = JobPlan(job_id=job_id, kind=JobKind.TRANSCRIPTION, sources=(source,), options={"summarize": False})
        return await pipeline.run(plan)

    snapshot = asyncio.run(_run())

    assert snapshot.result is not None
    assert snapshot.result["segments"][0]["error_code"] == "internal_error"
