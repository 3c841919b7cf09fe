from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
import re
import secrets
import shutil

from classroom.domain.contracts import ArtifactStore
from classroom.domain.errors import ArtifactMissingError
from classroom.domain.models import ArtifactHandle, WorkspaceHandle

logger = logging.getLogger("classroom.artifacts")

UPLOADS_PREFIX = "uploads"
JOBS_PREFIX = "jobs"
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class LocalArtifactStore(ArtifactStore):
    root: Path

    def __post_init__(self) -> None:
        (self.root / UPLOADS_PREFIX).mkdir(parents=True, exist_ok=True)
        (self.root / JOBS_PREFIX).mkdir(parents=True, exist_ok=True)

    def persist(self, payload: bytes, *, name: str, workspace: WorkspaceHandle | None = None) -> ArtifactHandle:
        filename = safe_name(name)
        if workspace is None:
            # Random prefix keeps concurrent uploads with the same filename apart.
            filename = f"{secrets.token_hex(8)}-{filename}"
            directory = self.root / UPLOADS_PREFIX
        else:
            directory = Path(workspace.path)
            directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_bytes(payload)
        return self.handle_for(path)

    def create_workspace(self, job_id: str) -> WorkspaceHandle:
        path = self.root / JOBS_PREFIX / safe_name(job_id)
        path.mkdir(parents=True, exist_ok=True)
        return WorkspaceHandle(job_id=job_id, path=str(path))

    def handle_for(self, path: Path, *, index: int = 0) -> ArtifactHandle:
        relative = path.resolve().relative_to(self.root.resolve()).as_posix()
        return ArtifactHandle(ref=f"file://{relative}", path=str(path), name=path.name, index=index)

    def read_bytes(self, handle: ArtifactHandle) -> bytes:
        path = Path(handle.path)
        if not path.is_file():
            raise ArtifactMissingError(f"artifact not found: {handle.ref}")
        return path.read_bytes()

    def exists(self, handle: ArtifactHandle) -> bool:
        return Path(handle.path).exists()

    def delete(self, handle: ArtifactHandle) -> None:
        try:
            Path(handle.path).unlink(missing_ok=True)
        except OSError:
            logger.warning("artifact delete failed", exc_info=True, extra={"unit": handle.name})

    def delete_workspace(self, workspace: WorkspaceHandle) -> None:
        path = Path(workspace.path)
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError:
            logger.warning("workspace delete failed", exc_info=True, extra={"job_id": workspace.job_id})


@contextmanager
def scoped_cleanup(
    store: ArtifactStore,
    *,
    handles: Sequence[ArtifactHandle] = (),
    workspaces: list[WorkspaceHandle] | None = None,
) -> Iterator[list[WorkspaceHandle]]:
    """Delete sources and any workspace registered inside the block, whatever happens.

    Callers append workspaces they create to the yielded list so that a
    workspace created halfway through a failing stage is still removed.
    """
    tracked: list[WorkspaceHandle] = workspaces if workspaces is not None else []
    try:
        yield tracked
    finally:
        for handle in handles:
            store.delete(handle)
        for workspace in tracked:
            store.delete_workspace(workspace)


def safe_name(name: str) -> str:
    base = Path(name.replace("\\", "/")).name
    cleaned = _UNSAFE_NAME_RE.sub("_", base).strip("._")
    return cleaned or "artifact.bin"
