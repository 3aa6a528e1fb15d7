"""Wires stores, cache, source and worker pool together from Settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from profiling_engine.config import Settings, settings
from profiling_engine.db.registry import close_pool
from profiling_engine.services.cache import CacheTransport, InMemoryCacheTransport, RedisCacheTransport
from profiling_engine.models.jobs import JobStatus
from profiling_engine.services.job_store import InMemoryJobStore, JobStore, PostgresJobStore
from profiling_engine.services.jobs_service import JobStateMachine
from profiling_engine.services.result_store import ResultStore
from profiling_engine.services.scheduler import WorkerPool
from profiling_engine.services.source_provider import LocalFileSource, SourceProvider, SupabaseSource

logger = logging.getLogger(__name__)


@dataclass
class ProfilingEngine:
    store: JobStore
    jobs: JobStateMachine
    cache: CacheTransport
    results: ResultStore
    source: SourceProvider
    pool: WorkerPool

    async def start(self) -> None:
        if isinstance(self.store, PostgresJobStore):
            await self.store.ensure_schema()
        await self.pool.start()

        # Jobs accepted before a restart (or left over by a previous stop)
        pending = await self.store.list_by_status(JobStatus.QUEUED)
        for job in pending:
            self.pool.submit(job.id)
        if pending:
            logger.info("Re-enqueued %d queued jobs", len(pending))

    async def stop(self) -> None:
        await self.pool.stop()
        await self.source.close()
        await self.cache.close()
        if isinstance(self.store, PostgresJobStore):
            await close_pool()


def build_engine(
    config: Settings = settings,
    store: Optional[JobStore] = None,
    cache: Optional[CacheTransport] = None,
    source: Optional[SourceProvider] = None,
) -> ProfilingEngine:
    """Empty connection settings fall back to in-memory backends and local files."""
    if store is None:
        store = PostgresJobStore() if config.database_url else InMemoryJobStore()
    if cache is None:
        cache = RedisCacheTransport(config.redis_url) if config.redis_url else InMemoryCacheTransport()
    if source is None:
        if config.supabase_url:
            source = SupabaseSource(
                config.supabase_url,
                config.supabase_service_role_key,
                config.supabase_storage_bucket,
            )
        else:
            source = LocalFileSource(Path(config.data_dir))

    logger.info(
        "Engine backends: jobs=%s cache=%s source=%s",
        type(store).__name__,
        type(cache).__name__,
        type(source).__name__,
    )

    jobs = JobStateMachine(store)
    results = ResultStore(cache, store, config.result_ttl_seconds)
    pool = WorkerPool(jobs, source, results, config)
    return ProfilingEngine(store=store, jobs=jobs, cache=cache, results=results, source=source, pool=pool)
