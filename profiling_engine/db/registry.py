"""
profiling_engine/db/registry.py

asyncpg pool for the job store, plus the tables it owns.

- Fails fast with a clear message when DATABASE_URL is missing
- One pool per process, created lazily on first use
- `ensure_schema` creates the job and transition-log tables idempotently
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import asyncpg

from profiling_engine.config import settings

_pool: Optional[asyncpg.Pool] = None

# profiling_jobs holds the current record per job; every status change is
# also appended to profiling_job_transitions.
JOBS_SCHEMA = """
    CREATE TABLE IF NOT EXISTS profiling_jobs (
        id text PRIMARY KEY,
        user_id text,
        file_ref text NOT NULL,
        status text NOT NULL,
        profile_json jsonb,
        failure_reason text,
        failure_message text,
        created_at timestamptz NOT NULL DEFAULT NOW(),
        updated_at timestamptz NOT NULL DEFAULT NOW()
    );
    CREATE INDEX IF NOT EXISTS profiling_jobs_status_idx
        ON profiling_jobs (status, created_at);
    CREATE TABLE IF NOT EXISTS profiling_job_transitions (
        job_id text NOT NULL REFERENCES profiling_jobs(id),
        from_status text NOT NULL,
        to_status text NOT NULL,
        at timestamptz NOT NULL DEFAULT NOW()
    );
"""


async def get_pool() -> asyncpg.Pool:
    """Create (once) and return the job-store pool."""
    global _pool

    if _pool is not None:
        return _pool

    dsn = (settings.database_url or "").strip()
    if not dsn:
        raise RuntimeError(
            "DATABASE_URL is empty or not set. "
            "Set it to a Postgres connection string, or leave it empty only for in-memory job storage."
        )

    try:
        _pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=settings.max_concurrent_jobs + 2)
    except asyncpg.InvalidPasswordError as e:
        raise RuntimeError("Job store authentication failed. Check DATABASE_URL user/password.") from e
    except (OSError, asyncpg.PostgresError) as e:
        raise RuntimeError(f"Job store unreachable: {type(e).__name__}: {e}") from e
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


class DBRegistry:
    """Query helpers over the shared pool."""

    async def ensure_schema(self) -> None:
        await self.execute(JOBS_SCHEMA)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """One connection inside a transaction; used for compare-and-set status writes."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> Sequence[asyncpg.Record]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchrow(query, *args)


registry = DBRegistry()
