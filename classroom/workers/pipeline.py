from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging

from classroom.clients.factory import ProviderCatalog
from classroom.domain.contracts import ArtifactStore, CapabilityProvider, JobHandler, JobRegistry
from classroom.domain.error_taxonomy import (
    ErrorCode,
    format_job_error,
    provider_error_code,
    resolve_stage_error,
)
from classroom.domain.errors import (
    ArtifactMissingError,
    NoProviderAvailableError,
    ProviderError,
    ResponseDecodeError,
    SplitError,
)
from classroom.domain.lifecycle import KIND_LIFECYCLES, KindLifecycle, unit_progress
from classroom.domain.models import ArtifactHandle, JobPlan, JobSnapshot, JobStatus, UnitResult, WorkspaceHandle
from classroom.domain.provider_selection import FixedPacer, Sleep, select_provider
from classroom.lib.artifacts.store import scoped_cleanup

logger = logging.getLogger("classroom.pipeline")


class StageFailure(Exception):
    """Whole-job failure raised inside a stage; carries the canonical error code."""

    def __init__(self, *, stage: str, code: str, detail: str) -> None:
        super().__init__(detail)
        self.stage = stage
        self.code: ErrorCode = resolve_stage_error(stage=stage, code=code)
        self.detail = detail


@dataclass
class JobPipeline:
    """Runs one job through split -> process -> aggregate -> secondary -> terminal.

    The task running ``run`` is the only writer of the job's registry record.
    Source artifacts and the job workspace are removed on every exit path.
    """

    registry: JobRegistry
    store: ArtifactStore
    catalog: ProviderCatalog
    handlers: Mapping[str, JobHandler]
    pacing_interval_seconds: float = 1.5
    unit_timeout_seconds: float = 120.0
    sleep: Sleep = field(default=asyncio.sleep)

    async def run(self, plan: JobPlan) -> JobSnapshot:
        with scoped_cleanup(self.store, handles=plan.sources) as workspaces:
            handler = self.handlers.get(plan.kind)
            if handler is None:
                return await self._fail(plan, code="internal_error", detail=f"no handler for kind '{plan.kind}'")
            lifecycle = KIND_LIFECYCLES[plan.kind]
            try:
                return await self._run_stages(plan, handler=handler, lifecycle=lifecycle, workspaces=workspaces)
            except StageFailure as failure:
                return await self._fail(plan, code=failure.code, detail=failure.detail, stage=failure.stage)
            except asyncio.CancelledError:
                await self._fail(plan, code="internal_error", detail="job cancelled during shutdown")
                raise
            except Exception as exc:
                logger.exception("pipeline crashed", extra={"job_id": plan.job_id, "kind": plan.kind})
                return await self._fail(plan, code="internal_error", detail=str(exc) or type(exc).__name__)

    async def _run_stages(
        self,
        plan: JobPlan,
        *,
        handler: JobHandler,
        lifecycle: KindLifecycle,
        workspaces: list[WorkspaceHandle],
    ) -> JobSnapshot:
        await self._transition(plan, JobStatus.SPLITTING, message="selecting backend")
        provider = await self._select(handler.capability, stage="split")

        workspace = self.store.create_workspace(plan.job_id)
        workspaces.append(workspace)
        try:
            units = await handler.splitter.split(plan.sources, workspace=workspace, store=self.store)
        except SplitError as exc:
            raise StageFailure(stage="split", code="split_failed", detail=str(exc)) from exc
        if not units:
            raise StageFailure(stage="split", code="split_failed", detail="splitter returned no units")
        await self.registry.report_progress(
            job_id=plan.job_id,
            progress=lifecycle.split_progress,
            message=f"split into {len(units)} units",
        )

        await self._transition(plan, JobStatus.PROCESSING, message=f"processing 0/{len(units)} units")
        results = await self._process_units(plan, handler=handler, lifecycle=lifecycle, units=units, provider=provider)

        await self._transition(plan, JobStatus.AGGREGATING, message="aggregating unit results")
        try:
            aggregate = handler.aggregate(results, plan=plan)
        except Exception as exc:
            raise StageFailure(stage="aggregate", code="aggregate_failed", detail=str(exc)) from exc

        if handler.wants_secondary(aggregate, plan=plan):
            aggregate = await self._secondary(plan, handler=handler, aggregate=aggregate, results=results)

        snapshot = await self.registry.complete(job_id=plan.job_id, result=aggregate)
        failed_units = sum(1 for item in results if not item.ok)
        logger.info(
            "job completed",
            extra={
                "job_id": plan.job_id,
                "kind": plan.kind,
                "status": snapshot.status,
                "unit": f"{len(results) - failed_units}/{len(results)}",
            },
        )
        return snapshot

    async def _process_units(
        self,
        plan: JobPlan,
        *,
        handler: JobHandler,
        lifecycle: KindLifecycle,
        units: Sequence[ArtifactHandle],
        provider: CapabilityProvider,
    ) -> list[UnitResult]:
        # Sequential on purpose: one backend, fixed pacing between calls.
        pacer = FixedPacer(interval_seconds=self.pacing_interval_seconds, sleep=self.sleep)
        results: list[UnitResult] = []
        total = len(units)
        for index, unit in enumerate(units):
            await pacer.wait_turn()
            results.append(await self._process_unit(plan, handler=handler, unit=unit, index=index, provider=provider))
            await self.registry.report_progress(
                job_id=plan.job_id,
                progress=unit_progress(index=index, total=total, cap=lifecycle.progress_cap),
                message=f"processing {index + 1}/{total} units",
            )
        return sorted(results, key=lambda item: item.index)

    async def _process_unit(
        self,
        plan: JobPlan,
        *,
        handler: JobHandler,
        unit: ArtifactHandle,
        index: int,
        provider: CapabilityProvider,
    ) -> UnitResult:
        code: str
        try:
            value = await asyncio.wait_for(
                handler.process_unit(unit, provider=provider, plan=plan),
                timeout=self.unit_timeout_seconds or None,
            )
        except TimeoutError:
            code, detail = "provider_transient", f"unit timed out after {self.unit_timeout_seconds:g}s"
        except ProviderError as exc:
            code, detail = provider_error_code(exc), str(exc)
        except ResponseDecodeError as exc:
            code, detail = "response_decode_failed", str(exc)
        except ArtifactMissingError as exc:
            code, detail = "artifact_missing", str(exc)
        except Exception as exc:
            logger.exception("unit crashed", extra={"job_id": plan.job_id, "unit": unit.name})
            code, detail = "internal_error", str(exc) or type(exc).__name__
        else:
            return UnitResult(index=index, unit_name=unit.name, ok=True, value=value)

        error_code = resolve_stage_error(stage="process", code=code)
        logger.warning(
            "unit failed",
            extra={
                "job_id": plan.job_id,
                "kind": plan.kind,
                "stage": "process",
                "unit": unit.name,
                "backend": provider.name,
                "error_code": error_code,
            },
        )
        return UnitResult(
            index=index,
            unit_name=unit.name,
            ok=False,
            value=handler.placeholder(unit, plan=plan, code=error_code, detail=detail),
            error_code=error_code,
            detail=detail,
        )

    async def _secondary(
        self,
        plan: JobPlan,
        *,
        handler: JobHandler,
        aggregate: dict[str, object],
        results: Sequence[UnitResult],
    ) -> dict[str, object]:
        if handler.secondary_status != JobStatus.AGGREGATING:
            await self._transition(plan, handler.secondary_status, message=f"computing {handler.secondary_field}")

        code: str
        try:
            provider = None
            if handler.secondary_capability is not None:
                provider = await self._select(handler.secondary_capability, stage="secondary")
            value = await asyncio.wait_for(
                handler.secondary(aggregate, results=results, plan=plan, provider=provider),
                timeout=self.unit_timeout_seconds or None,
            )
        except StageFailure as failure:
            code, detail = failure.code, failure.detail
        except TimeoutError:
            code, detail = "provider_transient", f"{handler.secondary_field} timed out"
        except ProviderError as exc:
            code, detail = provider_error_code(exc), str(exc)
        except ResponseDecodeError as exc:
            code, detail = "response_decode_failed", str(exc)
        except Exception as exc:
            logger.exception("secondary stage crashed", extra={"job_id": plan.job_id, "kind": plan.kind})
            code, detail = "internal_error", str(exc) or type(exc).__name__
        else:
            return {**aggregate, handler.secondary_field: value}

        # Only the secondary field degrades; the primary aggregate is still delivered.
        error_code = resolve_stage_error(stage="secondary", code=code)
        logger.warning(
            "secondary stage degraded",
            extra={"job_id": plan.job_id, "kind": plan.kind, "stage": "secondary", "error_code": error_code},
        )
        return {
            **aggregate,
            handler.secondary_field: None,
            f"{handler.secondary_field}_error": format_job_error(error_code, detail),
        }

    async def _select(self, capability: str, *, stage: str) -> CapabilityProvider:
        try:
            return await select_provider(self.catalog.for_capability(capability), capability=capability)
        except NoProviderAvailableError as exc:
            raise StageFailure(stage=stage, code="provider_unavailable", detail=str(exc)) from exc

    async def _transition(self, plan: JobPlan, status: str, *, message: str) -> None:
        await self.registry.transition(job_id=plan.job_id, to_status=status, message=message)
        logger.info(
            "job stage entered",
            extra={"job_id": plan.job_id, "kind": plan.kind, "status": status},
        )

    async def _fail(self, plan: JobPlan, *, code: str, detail: str, stage: str | None = None) -> JobSnapshot:
        error = format_job_error(code, detail)  # type: ignore[arg-type]
        logger.warning(
            "job failed",
            extra={"job_id": plan.job_id, "kind": plan.kind, "stage": stage, "error_code": code},
        )
        return await self.registry.fail(job_id=plan.job_id, error=error)

