"""profiling_engine/services/job_store.py

Job persistence providers.

Every status change goes through `transition`, a compare-and-set on the
current status: it applies only if the stored status still equals
`expected`, and returns None otherwise. That single guarded write is what
keeps at most one worker active per job.

Postgres schema (created by `db.registry.ensure_schema`):

  profiling_jobs(
    id text primary key,
    user_id text,
    file_ref text not null,
    status text not null,
    profile_json jsonb,
    failure_reason text,
    failure_message text,
    created_at timestamptz,
    updated_at timestamptz
  )

  profiling_job_transitions(job_id, from_status, to_status, at)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from profiling_engine.db.registry import registry
from profiling_engine.models.jobs import FailureReason, Job, JobFailure, JobStatus
from profiling_engine.models.profile import DatasetProfile

Transition = Tuple[JobStatus, JobStatus, datetime]


class JobStore(ABC):
    @abstractmethod
    async def create(self, job: Job) -> Job:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    async def transition(
        self,
        job_id: str,
        expected: JobStatus,
        new_status: JobStatus,
        profile: Optional[DatasetProfile] = None,
        failure: Optional[JobFailure] = None,
    ) -> Optional[Job]:
        """Atomically move `job_id` from `expected` to `new_status`; None if it was not in `expected`."""

    @abstractmethod
    async def list_by_status(self, status: JobStatus) -> List[Job]:
        """Jobs currently in `status`, oldest first."""

    @abstractmethod
    async def history(self, job_id: str) -> List[Transition]:
        ...


class InMemoryJobStore(JobStore):
    """Job arena keyed by id; a single lock serialises every write."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._history: Dict[str, List[Transition]] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: Job) -> Job:
        async with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists")
            self._jobs[job.id] = job
            self._history[job.id] = []
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    async def transition(
        self,
        job_id: str,
        expected: JobStatus,
        new_status: JobStatus,
        profile: Optional[DatasetProfile] = None,
        failure: Optional[JobFailure] = None,
    ) -> Optional[Job]:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None or current.status != expected:
                return None
            now = datetime.now(timezone.utc)
            updated = Job(
                id=current.id,
                file_ref=current.file_ref,
                user_id=current.user_id,
                status=new_status,
                profile=profile,
                failure=failure,
                created_at=current.created_at,
                updated_at=now,
            )
            self._jobs[job_id] = updated
            self._history[job_id].append((expected, new_status, now))
            return updated

    async def list_by_status(self, status: JobStatus) -> List[Job]:
        jobs = [j for j in self._jobs.values() if j.status == status]
        return sorted(jobs, key=lambda j: j.created_at)

    async def history(self, job_id: str) -> List[Transition]:
        return list(self._history.get(job_id, []))


def _job_from_row(row: Any) -> Job:
    status = JobStatus(row["status"])
    profile = None
    if row["profile_json"] is not None:
        profile = DatasetProfile.model_validate_json(row["profile_json"])
    failure = None
    if row["failure_reason"] is not None:
        failure = JobFailure(reason=FailureReason(row["failure_reason"]), message=row["failure_message"] or "")
    return Job(
        id=row["id"],
        file_ref=row["file_ref"],
        user_id=row["user_id"],
        status=status,
        profile=profile,
        failure=failure,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresJobStore(JobStore):
    async def ensure_schema(self) -> None:
        await registry.ensure_schema()

    async def create(self, job: Job) -> Job:
        try:
            row = await registry.fetchrow(
                """
                INSERT INTO profiling_jobs (id, user_id, file_ref, status, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                job.id,
                job.user_id,
                job.file_ref,
                job.status.value,
                job.created_at,
                job.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise ValueError(f"Job {job.id} already exists") from e
        return _job_from_row(row)

    async def get(self, job_id: str) -> Optional[Job]:
        row = await registry.fetchrow("SELECT * FROM profiling_jobs WHERE id=$1", job_id)
        return _job_from_row(row) if row else None

    async def transition(
        self,
        job_id: str,
        expected: JobStatus,
        new_status: JobStatus,
        profile: Optional[DatasetProfile] = None,
        failure: Optional[JobFailure] = None,
    ) -> Optional[Job]:
        async with registry.transaction() as conn:
            # WHERE status=$2 is the compare-and-set
            row = await conn.fetchrow(
                """
                UPDATE profiling_jobs
                SET status=$3,
                    profile_json=$4::jsonb,
                    failure_reason=$5,
                    failure_message=$6,
                    updated_at=NOW()
                WHERE id=$1 AND status=$2
                RETURNING *
                """,
                job_id,
                expected.value,
                new_status.value,
                profile.model_dump_json() if profile is not None else None,
                failure.reason.value if failure is not None else None,
                failure.message if failure is not None else None,
            )
            if row is None:
                return None
            await conn.execute(
                """
                INSERT INTO profiling_job_transitions (job_id, from_status, to_status, at)
                VALUES ($1, $2, $3, $4)
                """,
                job_id,
                expected.value,
                new_status.value,
                row["updated_at"],
            )
        return _job_from_row(row)

    async def list_by_status(self, status: JobStatus) -> List[Job]:
        rows = await registry.fetch(
            "SELECT * FROM profiling_jobs WHERE status=$1 ORDER BY created_at", status.value
        )
        return [_job_from_row(r) for r in rows]

    async def history(self, job_id: str) -> List[Transition]:
        rows = await registry.fetch(
            "SELECT from_status, to_status, at FROM profiling_job_transitions WHERE job_id=$1 ORDER BY at",
            job_id,
        )
        return [(JobStatus(r["from_status"]), JobStatus(r["to_status"]), r["at"]) for r in rows]
