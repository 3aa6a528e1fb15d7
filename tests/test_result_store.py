"""
Unit tests for the cache-backed result store
"""

import time
from unittest.mock import AsyncMock

import pytest
import redis.exceptions

from profiling_engine.engine.profiler import profile
from profiling_engine.services.cache import InMemoryCacheTransport
from profiling_engine.services.job_store import InMemoryJobStore
from profiling_engine.services.jobs_service import JobStateMachine
from profiling_engine.services.result_store import ResultStore, cache_key
from profiling_engine.services.source_provider import parse_csv
from tests.conftest import PEOPLE_CSV


@pytest.fixture
def people_profile():
    return profile(parse_csv(PEOPLE_CSV))


async def _completed_job(store, people_profile):
    machine = JobStateMachine(store)
    job = await machine.create_job("people.csv")
    await machine.start(job.id)
    return await machine.complete(job.id, people_profile)


class TestResultStore:
    @pytest.mark.asyncio
    async def test_put_then_get(self, people_profile):
        results = ResultStore(InMemoryCacheTransport(), InMemoryJobStore(), 60)
        await results.put("job-1", people_profile)
        assert await results.get("job-1") == people_profile

    @pytest.mark.asyncio
    async def test_hit_does_not_touch_job_record(self, people_profile):
        jobs = AsyncMock()
        results = ResultStore(InMemoryCacheTransport(), jobs, 60)

        await results.put("job-1", people_profile)
        assert await results.get("job-1") == people_profile
        jobs.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_miss_reads_through_and_refills(self, people_profile):
        store = InMemoryJobStore()
        cache = InMemoryCacheTransport()
        job = await _completed_job(store, people_profile)
        results = ResultStore(cache, store, 60)

        assert await cache.get(cache_key(job.id)) is None
        assert await results.get(job.id) == people_profile
        assert await cache.get(cache_key(job.id)) is not None

    @pytest.mark.asyncio
    async def test_expired_entry_falls_back_to_job_record(self, people_profile):
        store = InMemoryJobStore()
        cache = InMemoryCacheTransport()
        job = await _completed_job(store, people_profile)
        results = ResultStore(cache, store, 60)
        await results.put(job.id, people_profile)

        key = cache_key(job.id)
        value, _ = cache._data[key]
        cache._data[key] = (value, time.monotonic() - 1)

        assert await cache.get(key) is None
        assert await results.get(job.id) == people_profile

    @pytest.mark.asyncio
    async def test_unknown_or_unfinished_jobs_have_no_profile(self):
        store = InMemoryJobStore()
        machine = JobStateMachine(store)
        job = await machine.create_job("people.csv")
        results = ResultStore(InMemoryCacheTransport(), store, 60)

        assert await results.get(job.id) is None
        assert await results.get("missing") is None

    @pytest.mark.asyncio
    async def test_cache_outage_is_not_fatal(self, people_profile):
        store = InMemoryJobStore()
        job = await _completed_job(store, people_profile)
        transport = AsyncMock()
        transport.get.side_effect = redis.exceptions.ConnectionError("down")
        transport.set.side_effect = redis.exceptions.ConnectionError("down")
        results = ResultStore(transport, store, 60)

        await results.put(job.id, people_profile)
        assert await results.get(job.id) == people_profile

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_is_ignored(self, people_profile):
        store = InMemoryJobStore()
        cache = InMemoryCacheTransport()
        job = await _completed_job(store, people_profile)
        await cache.set(cache_key(job.id), b"{not json", 60)

        assert await ResultStore(cache, store, 60).get(job.id) == people_profile


class TestInMemoryCacheTransport:
    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self):
        cache = InMemoryCacheTransport()
        await cache.set("k", b"v", 0)
        assert cache.cleanup_expired() == 0
        assert await cache.get("k") == b"v"

    @pytest.mark.asyncio
    async def test_cleanup_expired(self):
        cache = InMemoryCacheTransport()
        await cache.set("old", b"v", 60)
        await cache.set("new", b"v", 60)
        cache._data["old"] = (b"v", time.monotonic() - 1)

        assert cache.cleanup_expired() == 1
        assert await cache.get("new") == b"v"
