from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from classroom.domain.errors import DomainInvariantError
from classroom.domain.ids import new_job_id
from classroom.domain.lifecycle import ALLOWED_TRANSITIONS, MAX_INTERIM_PROGRESS, is_terminal
from classroom.domain.models import JobSnapshot, JobStatus


@dataclass
class _JobRow:
    job_id: str
    kind: str
    status: str
    progress: float = 0.0
    message: str | None = None
    result: dict[str, object] | None = None
    error: str | None = None
    transitions: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass
class InMemoryJobRegistry:
    """Process-local job table. Nothing survives a restart."""

    jobs: dict[str, _JobRow] = field(default_factory=dict)

    async def create(self, *, kind: str, message: str | None = None) -> JobSnapshot:
        job_id = new_job_id()
        row = _JobRow(
            job_id=job_id,
            kind=kind,
            status=JobStatus.QUEUED,
            message=message,
            transitions=[JobStatus.QUEUED],
        )
        self.jobs[job_id] = row
        return _snapshot(row)

    async def get(self, *, job_id: str) -> JobSnapshot | None:
        row = self.jobs.get(job_id)
        if row is None:
            return None
        return _snapshot(row)

    async def put(self, snapshot: JobSnapshot) -> None:
        existing = self.jobs.get(snapshot.job_id)
        if existing is not None and is_terminal(existing.status):
            raise DomainInvariantError(f"job {snapshot.job_id} is terminal ({existing.status})")
        self.jobs[snapshot.job_id] = _JobRow(
            job_id=snapshot.job_id,
            kind=snapshot.kind,
            status=snapshot.status,
            progress=snapshot.progress,
            message=snapshot.message,
            result=snapshot.result,
            error=snapshot.error,
            transitions=list(snapshot.transitions),
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
        )

    async def transition(self, *, job_id: str, to_status: str, message: str | None = None) -> JobSnapshot:
        row = self._mutable_row(job_id)
        allowed = ALLOWED_TRANSITIONS.get(row.status, set())
        if to_status not in allowed:
            raise DomainInvariantError(f"invalid transition {row.status} -> {to_status}")
        if to_status in (JobStatus.COMPLETED, JobStatus.FAILED):
            raise DomainInvariantError("terminal transitions go through complete() or fail()")
        row.status = to_status
        row.transitions.append(to_status)
        if message is not None:
            row.message = message
        row.updated_at = datetime.now(tz=UTC)
        return _snapshot(row)

    async def report_progress(self, *, job_id: str, progress: float, message: str | None = None) -> JobSnapshot:
        row = self._mutable_row(job_id)
        bounded = max(0.0, min(float(progress), MAX_INTERIM_PROGRESS))
        # Progress is monotonic: late or out-of-order reports never move it back.
        row.progress = max(row.progress, bounded)
        if message is not None:
            row.message = message
        row.updated_at = datetime.now(tz=UTC)
        return _snapshot(row)

    async def complete(self, *, job_id: str, result: dict[str, object], message: str | None = None) -> JobSnapshot:
        row = self._mutable_row(job_id)
        if JobStatus.COMPLETED not in ALLOWED_TRANSITIONS.get(row.status, set()):
            raise DomainInvariantError(f"invalid transition {row.status} -> {JobStatus.COMPLETED}")
        row.status = JobStatus.COMPLETED
        row.transitions.append(JobStatus.COMPLETED)
        row.progress = 100.0
        row.result = dict(result)
        row.message = message or "done"
        row.updated_at = datetime.now(tz=UTC)
        return _snapshot(row)

    async def fail(self, *, job_id: str, error: str) -> JobSnapshot:
        row = self._mutable_row(job_id)
        row.status = JobStatus.FAILED
        row.transitions.append(JobStatus.FAILED)
        row.error = error
        row.message = "failed"
        row.updated_at = datetime.now(tz=UTC)
        return _snapshot(row)

    def _mutable_row(self, job_id: str) -> _JobRow:
        row = self.jobs.get(job_id)
        if row is None:
            raise DomainInvariantError(f"job not found: {job_id}")
        if is_terminal(row.status):
            raise DomainInvariantError(f"job {job_id} is terminal ({row.status})")
        return row


def _snapshot(row: _JobRow) -> JobSnapshot:
    return JobSnapshot(
        job_id=row.job_id,
        kind=row.kind,
        status=str(row.status),
        progress=row.progress,
        message=row.message,
        result=dict(row.result) if row.result is not None else None,
        error=row.error,
        created_at=row.created_at,
        updated_at=row.updated_at,
        transitions=tuple(str(item) for item in row.transitions),
    )
