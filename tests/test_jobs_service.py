"""
Unit tests for the job state machine
"""

import asyncio

import pytest
from pydantic import ValidationError

from profiling_engine.engine.profiler import profile
from profiling_engine.errors import ConflictingTransition, JobNotFound
from profiling_engine.models.jobs import FailureReason, Job, JobStatus
from profiling_engine.services.job_store import InMemoryJobStore
from profiling_engine.services.jobs_service import JobStateMachine
from profiling_engine.services.source_provider import parse_csv
from tests.conftest import PEOPLE_CSV


@pytest.fixture
def machine() -> JobStateMachine:
    return JobStateMachine(InMemoryJobStore())


@pytest.fixture
def people_profile():
    return profile(parse_csv(PEOPLE_CSV))


class TestJobStateMachine:
    @pytest.mark.asyncio
    async def test_new_jobs_are_queued(self, machine):
        job = await machine.create_job("people.csv", user_id="u1")
        assert job.status == JobStatus.QUEUED
        assert job.profile is None and job.failure is None
        assert (await machine.get_job(job.id)).user_id == "u1"

    @pytest.mark.asyncio
    async def test_second_start_conflicts_and_leaves_status(self, machine):
        job = await machine.create_job("people.csv")
        await machine.start(job.id)

        with pytest.raises(ConflictingTransition) as exc:
            await machine.start(job.id)

        assert exc.value.actual == JobStatus.PROCESSING
        assert (await machine.get_job(job.id)).status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_concurrent_starts_admit_exactly_one(self, machine):
        job = await machine.create_job("people.csv")

        results = await asyncio.gather(*(machine.start(job.id) for _ in range(5)), return_exceptions=True)

        started = [r for r in results if isinstance(r, Job)]
        conflicts = [r for r in results if isinstance(r, ConflictingTransition)]
        assert len(started) == 1
        assert len(conflicts) == 4

    @pytest.mark.asyncio
    async def test_complete_attaches_profile_once(self, machine, people_profile):
        job = await machine.create_job("people.csv")
        await machine.start(job.id)

        done = await machine.complete(job.id, people_profile)
        assert done.status == JobStatus.COMPLETED
        assert done.profile == people_profile
        assert done.failure is None

        with pytest.raises(ConflictingTransition):
            await machine.complete(job.id, people_profile)
        with pytest.raises(ConflictingTransition):
            await machine.fail(job.id, FailureReason.TIMEOUT, "late")
        with pytest.raises(ConflictingTransition):
            await machine.start(job.id)

    @pytest.mark.asyncio
    async def test_fail_attaches_reason(self, machine):
        job = await machine.create_job("people.csv")
        await machine.start(job.id)

        failed = await machine.fail(job.id, FailureReason.MALFORMED_SOURCE, "CSV has no columns")
        assert failed.status == JobStatus.FAILED
        assert failed.failure.reason == FailureReason.MALFORMED_SOURCE
        assert failed.failure.message == "CSV has no columns"
        assert failed.profile is None

        with pytest.raises(ConflictingTransition):
            await machine.fail(job.id, FailureReason.MALFORMED_SOURCE, "again")

    @pytest.mark.asyncio
    async def test_cannot_complete_a_queued_job(self, machine, people_profile):
        job = await machine.create_job("people.csv")
        with pytest.raises(ConflictingTransition):
            await machine.complete(job.id, people_profile)

    @pytest.mark.asyncio
    async def test_unknown_job(self, machine):
        with pytest.raises(JobNotFound):
            await machine.start("nope")
        with pytest.raises(JobNotFound):
            await machine.get_job("nope")

    @pytest.mark.asyncio
    async def test_transitions_are_recorded(self, machine):
        job = await machine.create_job("people.csv")
        await machine.start(job.id)
        await machine.fail(job.id, FailureReason.TIMEOUT, "slow")

        history = await machine.store.history(job.id)
        assert [(a, b) for a, b, _ in history] == [
            (JobStatus.QUEUED, JobStatus.PROCESSING),
            (JobStatus.PROCESSING, JobStatus.FAILED),
        ]

    @pytest.mark.asyncio
    async def test_resubmit_creates_a_new_job(self, machine):
        job = await machine.create_job("people.csv", user_id="u1")
        await machine.start(job.id)
        failed = await machine.fail(job.id, FailureReason.TIMEOUT, "slow")

        fresh = await machine.resubmit(job.id)

        assert fresh.id != job.id
        assert fresh.status == JobStatus.QUEUED
        assert fresh.file_ref == "people.csv"
        assert fresh.user_id == "u1"
        assert await machine.get_job(job.id) == failed

    @pytest.mark.asyncio
    async def test_resubmit_requires_terminal_job(self, machine):
        job = await machine.create_job("people.csv")
        with pytest.raises(ConflictingTransition):
            await machine.resubmit(job.id)

    @pytest.mark.asyncio
    async def test_store_lists_jobs_by_status_oldest_first(self, machine):
        a = await machine.create_job("a.csv")
        b = await machine.create_job("b.csv")
        c = await machine.create_job("c.csv")
        await machine.start(b.id)

        queued = await machine.store.list_by_status(JobStatus.QUEUED)
        assert [j.id for j in queued] == [a.id, c.id]
        assert [j.id for j in await machine.store.list_by_status(JobStatus.PROCESSING)] == [b.id]


class TestJobModel:
    def test_completed_job_requires_profile(self):
        with pytest.raises(ValidationError):
            Job(file_ref="x.csv", status=JobStatus.COMPLETED)

    def test_failure_only_on_failed_jobs(self):
        with pytest.raises(ValidationError):
            Job(file_ref="x.csv", failure={"reason": "timeout", "message": "slow"})
