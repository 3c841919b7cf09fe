from __future__ import annotations

from pathlib import Path

import pytest

from classroom.domain.errors import ArtifactMissingError
from classroom.lib.artifacts import build_artifact_store
from classroom.lib.artifacts.store import LocalArtifactStore, safe_name, scoped_cleanup


@pytest.mark.unit
def test_persisted_uploads_do_not_collide(tmp_path: Path) -> None:
    store = LocalArtifactStore(root=tmp_path)

    first = store.persist(b"one", name="sheet.png")
    second = store.persist(b"two", name="sheet.png")

    assert first.path != second.path
    assert first.ref.startswith("file://uploads/")
    assert store.read_bytes(first) == b"one"
    assert store.read_bytes(second) == b"two"


@pytest.mark.unit
def test_delete_is_idempotent(tmp_path: Path) -> None:
    store = LocalArtifactStore(root=tmp_path)
    handle = store.persist(b"payload", name="lecture.mp3")
    workspace = store.create_workspace("job_1")
    store.persist(b"chunk", name="chunk_000.flac", workspace=workspace)

    store.delete(handle)
    store.delete(handle)
    store.delete_workspace(workspace)
    store.delete_workspace(workspace)

    assert not store.exists(handle)
    assert not Path(workspace.path).exists()
    with pytest.raises(ArtifactMissingError):
        store.read_bytes(handle)


@pytest.mark.unit
def test_scoped_cleanup_runs_when_the_block_raises(tmp_path: Path) -> None:
    store = LocalArtifactStore(root=tmp_path)
    handle = store.persist(b"payload", name="lecture.mp3")

    with pytest.raises(RuntimeError):
        with scoped_cleanup(store, handles=[handle]) as workspaces:
            workspace = store.create_workspace("job_2")
            workspaces.append(workspace)
            store.persist(b"chunk", name="chunk_000.flac", workspace=workspace)
            raise RuntimeError("stage blew up")

    assert not Path(handle.path).exists()
    assert list((tmp_path / "jobs").iterdir()) == []


@pytest.mark.unit
def test_upload_names_cannot_escape_the_root() -> None:
    assert safe_name("../../etc/passwd") == "passwd"
    assert safe_name("C:\\temp\\prova 1.png") == "prova_1.png"
    assert safe_name("...") == "artifact.bin"


@pytest.mark.unit
def test_factory_reads_root_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARTIFACT_ROOT", str(tmp_path / "blobs"))

    store = build_artifact_store()

    assert isinstance(store, LocalArtifactStore)
    assert (tmp_path / "blobs" / "uploads").is_dir()
