from __future__ import annotations

import os
from pathlib import Path

from classroom.domain.contracts import ArtifactStore
from classroom.lib.artifacts import DEFAULT_ARTIFACT_ROOT
from classroom.lib.artifacts.store import LocalArtifactStore


def build_artifact_store(*, root: str | Path | None = None) -> ArtifactStore:
    resolved = root or os.getenv("ARTIFACT_ROOT", DEFAULT_ARTIFACT_ROOT)
    if not str(resolved).strip():
        raise ValueError("artifact root must not be empty")
    return LocalArtifactStore(root=Path(resolved))
