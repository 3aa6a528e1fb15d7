"""
Cache-backed result store for completed profiles.

Reads go to the cache first and fall through to the job record on a miss
(refilling the cache). Writes mirror the completed profile into the cache.
The job record stays authoritative, so cache errors and evictions only cost
latency: they are logged and never surface to callers.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.exceptions
from pydantic import ValidationError

from profiling_engine.models.jobs import JobStatus
from profiling_engine.models.profile import DatasetProfile
from profiling_engine.services.cache import CacheTransport
from profiling_engine.services.job_store import JobStore

logger = logging.getLogger(__name__)

CACHE_ERRORS = (redis.exceptions.RedisError, OSError)


def cache_key(job_id: str) -> str:
    return f"profile:{job_id}"


class ResultStore:
    def __init__(self, transport: CacheTransport, jobs: JobStore, default_ttl_seconds: int):
        self.transport = transport
        self.jobs = jobs
        self.default_ttl_seconds = default_ttl_seconds

    async def put(self, job_id: str, profile: DatasetProfile, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            await self.transport.set(cache_key(job_id), profile.model_dump_json().encode("utf-8"), ttl)
        except CACHE_ERRORS as e:
            logger.warning("[Job-%s] Failed to cache profile: %s", job_id, e)

    async def _cached(self, job_id: str) -> Optional[DatasetProfile]:
        try:
            raw = await self.transport.get(cache_key(job_id))
        except CACHE_ERRORS as e:
            logger.warning("[Job-%s] Cache read failed, falling back to job record: %s", job_id, e)
            return None
        if raw is None:
            return None
        try:
            return DatasetProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("[Job-%s] Discarding undecodable cached profile: %s", job_id, e)
            return None

    async def get(self, job_id: str) -> Optional[DatasetProfile]:
        cached = await self._cached(job_id)
        if cached is not None:
            return cached

        job = await self.jobs.get(job_id)
        if job is None or job.status != JobStatus.COMPLETED or job.profile is None:
            return None

        logger.debug("[Job-%s] Cache miss, refilled from job record", job_id)
        await self.put(job_id, job.profile)
        return job.profile
