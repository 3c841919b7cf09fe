from __future__ import annotations

from dataclasses import dataclass

from classroom.clients.factory import ProviderCatalog
from classroom.domain.contracts import ArtifactStore, JobRegistry
from classroom.domain.instructions import InstructionSet
from classroom.workers.dispatch import JobDispatcher
from classroom.workers.pipeline import JobPipeline


@dataclass(frozen=True)
class ApiDeps:
    registry: JobRegistry
    store: ArtifactStore
    catalog: ProviderCatalog
    instructions: InstructionSet
    pipeline: JobPipeline
    dispatcher: JobDispatcher
