"""profiling_engine/services/jobs_service.py

Job lifecycle: queued -> processing -> completed | failed.

All status changes are funnelled through `JobStore.transition`, a guarded
compare-and-set. A transition attempted from the wrong status raises
ConflictingTransition and leaves the record untouched. Terminal jobs never
move again; re-running one means `resubmit`, which creates a new job.
"""

from __future__ import annotations

import logging
from typing import Optional

from profiling_engine.errors import ConflictingTransition, JobNotFound
from profiling_engine.models.jobs import FailureReason, Job, JobFailure, JobStatus
from profiling_engine.models.profile import DatasetProfile
from profiling_engine.services.job_store import JobStore

logger = logging.getLogger(__name__)


class JobStateMachine:
    def __init__(self, store: JobStore):
        self.store = store

    async def create_job(self, file_ref: str, user_id: Optional[str] = None) -> Job:
        job = await self.store.create(Job(file_ref=file_ref, user_id=user_id))
        logger.info("[Job-%s] Created (queued) for %s", job.id, file_ref)
        return job

    async def get_job(self, job_id: str) -> Job:
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def _transition(
        self,
        job_id: str,
        expected: JobStatus,
        target: JobStatus,
        profile: Optional[DatasetProfile] = None,
        failure: Optional[JobFailure] = None,
    ) -> Job:
        updated = await self.store.transition(job_id, expected, target, profile=profile, failure=failure)
        if updated is None:
            current = await self.store.get(job_id)
            if current is None:
                raise JobNotFound(job_id)
            raise ConflictingTransition(job_id, expected, current.status, target)
        return updated

    async def start(self, job_id: str) -> Job:
        """Queued -> Processing. A second attempt on the same job raises ConflictingTransition."""
        job = await self._transition(job_id, JobStatus.QUEUED, JobStatus.PROCESSING)
        logger.info("[Job-%s] Status -> processing", job_id)
        return job

    async def complete(self, job_id: str, profile: DatasetProfile) -> Job:
        job = await self._transition(job_id, JobStatus.PROCESSING, JobStatus.COMPLETED, profile=profile)
        logger.info("[Job-%s] Status -> completed", job_id)
        return job

    async def fail(self, job_id: str, reason: FailureReason, message: str) -> Job:
        job = await self._transition(
            job_id,
            JobStatus.PROCESSING,
            JobStatus.FAILED,
            failure=JobFailure(reason=reason, message=message),
        )
        logger.warning("[Job-%s] Status -> failed (%s): %s", job_id, reason.value, message)
        return job

    async def resubmit(self, job_id: str) -> Job:
        """Queue a fresh job for the same source; the terminal job is left as is."""
        previous = await self.get_job(job_id)
        if not previous.status.is_terminal:
            raise ConflictingTransition(job_id, JobStatus.COMPLETED, previous.status, JobStatus.QUEUED)
        job = await self.create_job(previous.file_ref, previous.user_id)
        logger.info("[Job-%s] Resubmitted as %s", job_id, job.id)
        return job
