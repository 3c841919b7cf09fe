from pathlib import Path

from fastapi.testclient import TestClient
import pytest

from classroom.api.http_app import build_app
from tests.integration.stub_runtime import build_stub_container, wait_for_terminal


@pytest.mark.integration
def test_transcription_job_is_accepted_then_completed(tmp_path: Path) -> None:
    container = build_stub_container(tmp_path, chunk_count=3)
    app = build_app(run_id="integration-jobs", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        response = client.post(
            "/jobs",
            data={"kind": "transcription", "summarize": "true"},
            files={"audio": ("lecture.mp3", b"fake-mp3-bytes", "audio/mpeg")},
        )
        assert response.status_code == 202
        accepted = response.json()
        assert accepted["status"] == "queued"
        assert accepted["job_id"].startswith("job_")

        body = wait_for_terminal(client, accepted["job_id"])

    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["error"] is None
    assert body["result"]["transcription"] == "\n\n".join(["stub transcription of 7 bytes"] * 3)
    assert body["result"]["summary"] == "Stub summary."
    assert len(body["result"]["segments"]) == 3
    assert list((tmp_path / "uploads").iterdir()) == []
    assert list((tmp_path / "jobs").iterdir()) == []


@pytest.mark.integration
def test_grading_job_returns_locally_computed_grades(tmp_path: Path) -> None:
    container = build_stub_container(tmp_path)
    app = build_app(run_id="integration-grading", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        response = client.post(
            "/jobs",
            data={"kind": "grading", "answer_key": "A, B, A"},
            files=[
                ("images", ("student_1.png", b"png-1", "image/png")),
                ("images", ("student_2.png", b"png-2", "image/png")),
            ],
        )
        assert response.status_code == 202
        body = wait_for_terminal(client, response.json()["job_id"])

    assert body["status"] == "completed"
    sheets = body["result"]["sheets"]
    assert sheets[0]["unit"].endswith("student_1.png")
    assert sheets[1]["unit"].endswith("student_2.png")
    assert [sheet["grade"] for sheet in sheets] == ["2/3", "2/3"]
    assert body["result"]["class_summary"]["graded"] == 2


@pytest.mark.integration
def test_essay_job_uses_max_score(tmp_path: Path) -> None:
    container = build_stub_container(tmp_path)
    app = build_app(run_id="integration-essay", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        response = client.post(
            "/jobs",
            data={"kind": "essay_grading", "max_score": "10", "rubric": "argument quality"},
            files=[("images", ("essay.jpg", b"jpg", "image/jpeg"))],
        )
        assert response.status_code == 202
        body = wait_for_terminal(client, response.json()["job_id"])

    assert body["status"] == "completed"
    assert body["result"]["max_score"] == 10
    assert body["result"]["essays"][0]["score"] == 5


@pytest.mark.integration
@pytest.mark.parametrize(
    ("data", "files", "detail"),
    [
        ({"kind": "transcription"}, None, "at least one file"),
        ({"kind": "podcast"}, {"audio": ("a.mp3", b"x", "audio/mpeg")}, "unsupported job kind"),
        ({"kind": "grading"}, [("images", ("s.png", b"x", "image/png"))], "answer_key is required"),
        ({"kind": "grading", "answer_key": " ; "}, [("images", ("s.png", b"x", "image/png"))], "answer key"),
        ({"kind": "transcription"}, {"audio": ("a.mp3", b"", "audio/mpeg")}, "is empty"),
        ({"kind": "transcription", "max_sentences": "99"}, {"audio": ("a.mp3", b"x", "audio/mpeg")}, "max_sentences"),
    ],
)
def test_bad_submissions_return_400_without_creating_jobs(
    tmp_path: Path,
    data: dict[str, str],
    files: object,
    detail: str,
) -> None:
    container = build_stub_container(tmp_path)
    app = build_app(run_id="integration-400", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        response = client.post("/jobs", data=data, files=files)

    assert response.status_code == 400
    assert detail in response.json()["detail"]
    assert container.dispatcher.state.started_total == 0
    assert list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.integration
def test_unknown_job_id_is_404(tmp_path: Path) -> None:
    container = build_stub_container(tmp_path)
    app = build_app(run_id="integration-404", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        response = client.get("/jobs/job_01ARZ3NDEKTSV4RRFFQ69G5FAV")

    assert response.status_code == 404
    assert response.json() == {"detail": "job not found"}


@pytest.mark.integration
def test_summary_length_and_sheet_letters_reach_the_prompts(tmp_path: Path) -> None:
    container = build_stub_container(tmp_path, chunk_count=1)
    app = build_app(run_id="integration-form-fields", api_deps=container.api_deps, mode="stub")

    with TestClient(app) as client:
        transcription = client.post(
            "/jobs",
            data={"kind": "transcription", "max_sentences": "2"},
            files={"audio": ("lecture.mp3", b"fake-mp3-bytes", "audio/mpeg")},
        )
        grading = client.post(
            "/jobs",
            data={"kind": "grading", "answer_key": "A", "options": "a, b, c"},
            files=[("images", ("s.png", b"png", "image/png"))],
        )
        assert wait_for_terminal(client, transcription.json()["job_id"])["status"] == "completed"
        assert wait_for_terminal(client, grading.json()["job_id"])["status"] == "completed"

    [writer] = container.catalog.for_capability("generation")
    [vision] = container.catalog.for_capability("vision")
    assert "at most 2 sentences" in (writer.calls[0].text or "")
    assert "A, B, C" in (vision.calls[0].text or "")
