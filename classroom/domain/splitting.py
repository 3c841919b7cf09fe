from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from classroom.clients.ffmpeg import FfmpegRunner
from classroom.domain.contracts import ArtifactStore, UnitSplitter
from classroom.domain.errors import SplitError
from classroom.domain.models import ArtifactHandle, WorkspaceHandle

MIN_SEGMENT_SECONDS = 10
MAX_SEGMENT_SECONDS = 600
CHUNK_PREFIX = "chunk_"
CHUNK_SUFFIX = ".flac"


class SegmentRunner(Protocol):
    def segment(self, *, source_path: str, output_pattern: str, segment_seconds: int) -> None: ...


@dataclass(frozen=True)
class AudioSegmentSplitter(UnitSplitter):
    """Time-based splitter; every chunk but the last has exactly ``segment_seconds``."""

    segment_seconds: int = 60
    runner: SegmentRunner = field(default_factory=FfmpegRunner)

    def __post_init__(self) -> None:
        if not MIN_SEGMENT_SECONDS <= self.segment_seconds <= MAX_SEGMENT_SECONDS:
            raise ValueError(
                f"segment_seconds must be within [{MIN_SEGMENT_SECONDS}, {MAX_SEGMENT_SECONDS}]"
            )

    async def split(
        self,
        sources: tuple[ArtifactHandle, ...],
        *,
        workspace: WorkspaceHandle,
        store: ArtifactStore,
    ) -> list[ArtifactHandle]:
        if len(sources) != 1:
            raise SplitError(f"audio jobs take exactly one source file, got {len(sources)}")
        source = sources[0]
        if not Path(source.path).is_file():
            raise SplitError(f"source artifact is missing: {source.ref}")

        chunk_dir = Path(workspace.path)
        chunk_dir.mkdir(parents=True, exist_ok=True)
        pattern = str(chunk_dir / f"{CHUNK_PREFIX}%03d{CHUNK_SUFFIX}")
        await asyncio.to_thread(
            self.runner.segment,
            source_path=source.path,
            output_pattern=pattern,
            segment_seconds=self.segment_seconds,
        )
        return collect_chunks(chunk_dir, store=store)


@dataclass(frozen=True)
class ImageBatchSplitter(UnitSplitter):
    """Uploaded images already are the units; keep upload order."""

    async def split(
        self,
        sources: tuple[ArtifactHandle, ...],
        *,
        workspace: WorkspaceHandle,
        store: ArtifactStore,
    ) -> list[ArtifactHandle]:
        del workspace, store
        if not sources:
            raise SplitError("image batch is empty")
        units: list[ArtifactHandle] = []
        for index, source in enumerate(sources):
            if not Path(source.path).is_file():
                raise SplitError(f"source artifact is missing: {source.ref}")
            units.append(
                ArtifactHandle(ref=source.ref, path=source.path, name=source.name, index=index)
            )
        return units


def collect_chunks(chunk_dir: Path, *, store: ArtifactStore) -> list[ArtifactHandle]:
    # Zero-padded names sort in time order; length first covers index >= 1000.
    paths = sorted(
        (
            path
            for path in chunk_dir.iterdir()
            if path.is_file() and path.name.startswith(CHUNK_PREFIX) and path.name.endswith(CHUNK_SUFFIX)
        ),
        key=lambda path: (len(path.name), path.name),
    )
    if not paths:
        raise SplitError("splitter produced no audio segments")
    return [store.handle_for(path, index=index) for index, path in enumerate(paths)]
