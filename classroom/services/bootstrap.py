from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from classroom.api.handlers.deps import ApiDeps
from classroom.clients.factory import ProviderCatalog, build_provider_catalog
from classroom.domain.contracts import ArtifactStore, JobRegistry
from classroom.domain.instructions import InstructionSet, load_instruction_set
from classroom.domain.splitting import AudioSegmentSplitter
from classroom.lib.artifacts import build_artifact_store
from classroom.repositories.memory import InMemoryJobRegistry
from classroom.settings import Settings, settings_from_env
from classroom.workers.dispatch import JobDispatcher
from classroom.workers.handlers.deps import HandlerDeps
from classroom.workers.handlers.factory import build_job_handlers
from classroom.workers.pipeline import JobPipeline


@dataclass
class RuntimeContainer:
    settings: Settings
    registry: JobRegistry
    store: ArtifactStore
    catalog: ProviderCatalog
    instructions: InstructionSet
    pipeline: JobPipeline
    dispatcher: JobDispatcher
    api_deps: ApiDeps


def build_runtime_container(settings: Settings | None = None) -> RuntimeContainer:
    settings = settings or settings_from_env()
    registry = InMemoryJobRegistry()
    store = build_artifact_store(root=Path(settings.artifact_root))
    catalog = build_provider_catalog(settings)
    instructions = load_instruction_set(file_path=settings.instruction_set_path)
    handlers = build_job_handlers(
        HandlerDeps(store=store, instructions=instructions),
        audio_splitter=AudioSegmentSplitter(segment_seconds=settings.segment_seconds),
    )
    pipeline = JobPipeline(
        registry=registry,
        store=store,
        catalog=catalog,
        handlers=handlers,
        pacing_interval_seconds=settings.pacing_interval_seconds,
        unit_timeout_seconds=settings.unit_timeout_seconds,
    )
    dispatcher = JobDispatcher(shutdown_grace_seconds=settings.shutdown_grace_seconds)
    api_deps = ApiDeps(
        registry=registry,
        store=store,
        catalog=catalog,
        instructions=instructions,
        pipeline=pipeline,
        dispatcher=dispatcher,
    )
    return RuntimeContainer(
        settings=settings,
        registry=registry,
        store=store,
        catalog=catalog,
        instructions=instructions,
        pipeline=pipeline,
        dispatcher=dispatcher,
        api_deps=api_deps,
    )
