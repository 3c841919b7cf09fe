from __future__ import annotations

from dataclasses import dataclass

from classroom.domain.contracts import ArtifactStore
from classroom.domain.instructions import InstructionSet


@dataclass(frozen=True)
class HandlerDeps:
    store: ArtifactStore
    instructions: InstructionSet
