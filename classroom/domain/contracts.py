from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from classroom.domain.dto import ProviderRequest, ProviderResult
from classroom.domain.models import ArtifactHandle, JobPlan, JobSnapshot, UnitResult, WorkspaceHandle


@runtime_checkable
class JobRegistry(Protocol):
    """Job id -> job record mapping shared by the submission path and pipeline tasks.

    Each record has exactly one writer (the pipeline task bound to its id);
    the status endpoint only reads. A multi-process deployment swaps the
    in-memory implementation for a shared key-value store behind the same
    contract.
    """

    async def create(self, *, kind: str, message: str | None = None) -> JobSnapshot: ...

    async def get(self, *, job_id: str) -> JobSnapshot | None: ...

    async def put(self, snapshot: JobSnapshot) -> None: ...

    async def transition(self, *, job_id: str, to_status: str, message: str | None = None) -> JobSnapshot: ...

    async def report_progress(self, *, job_id: str, progress: float, message: str | None = None) -> JobSnapshot: ...

    async def complete(self, *, job_id: str, result: dict[str, object], message: str | None = None) -> JobSnapshot: ...

    async def fail(self, *, job_id: str, error: str) -> JobSnapshot: ...


@runtime_checkable
class ArtifactStore(Protocol):
    """Temporary on-disk blobs. Deletion is idempotent and never raises."""

    def persist(self, payload: bytes, *, name: str, workspace: WorkspaceHandle | None = None) -> ArtifactHandle: ...

    def create_workspace(self, job_id: str) -> WorkspaceHandle: ...

    def handle_for(self, path: Path, *, index: int = 0) -> ArtifactHandle: ...

    def read_bytes(self, handle: ArtifactHandle) -> bytes: ...

    def exists(self, handle: ArtifactHandle) -> bool: ...

    def delete(self, handle: ArtifactHandle) -> None: ...

    def delete_workspace(self, workspace: WorkspaceHandle) -> None: ...


@runtime_checkable
class UnitSplitter(Protocol):
    async def split(
        self,
        sources: tuple[ArtifactHandle, ...],
        *,
        workspace: WorkspaceHandle,
        store: ArtifactStore,
    ) -> list[ArtifactHandle]: ...


@runtime_checkable
class CapabilityProvider(Protocol):
    name: str

    async def probe(self) -> None: ...

    async def invoke(self, request: ProviderRequest) -> ProviderResult: ...


@runtime_checkable
class JobHandler(Protocol):
    """Per-kind behaviour plugged into the shared split/process/aggregate pipeline."""

    kind: str
    capability: str
    splitter: UnitSplitter
    secondary_status: str
    secondary_field: str
    secondary_capability: str | None

    async def process_unit(
        self,
        unit: ArtifactHandle,
        *,
        provider: CapabilityProvider,
        plan: JobPlan,
    ) -> object: ...

    def placeholder(self, unit: ArtifactHandle, *, plan: JobPlan, code: str, detail: str) -> object: ...

    def aggregate(self, results: Sequence[UnitResult], *, plan: JobPlan) -> dict[str, object]: ...

    def wants_secondary(self, aggregate: dict[str, object], *, plan: JobPlan) -> bool: ...

    async def secondary(
        self,
        aggregate: dict[str, object],
        *,
        results: Sequence[UnitResult],
        plan: JobPlan,
        provider: CapabilityProvider | None,
    ) -> object: ...
