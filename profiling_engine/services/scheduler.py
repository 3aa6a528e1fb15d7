"""
Worker pool that runs profiling jobs.

A fixed number of worker tasks pull job ids from one queue, so at most
`max_concurrent_jobs` jobs execute at once. Per job:

  start (queued -> processing) -> load source (retried while transient)
  -> profile off the event loop -> complete | fail

The whole execution runs under a timeout. On expiry the in-flight work is
cancelled, its cancel signal is set so the profiler thread stops at the next
column, and the job fails with reason `timeout`. Nothing partial is stored.

Stopping the pool fails jobs that are mid-run (reason `internal_error`) so none
is left in processing. Jobs still waiting in the queue stay queued in the
store; `ProfilingEngine.start` enqueues them again.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Dict, List, Optional

from profiling_engine.config import Settings, settings
from profiling_engine.engine.profiler import DatasetProfiler
from profiling_engine.errors import ConflictingTransition, JobNotFound, ProfilingError, SourceUnavailable
from profiling_engine.models.jobs import FailureReason, Job
from profiling_engine.models.profile import DatasetProfile
from profiling_engine.models.table import Table
from profiling_engine.services.jobs_service import JobStateMachine
from profiling_engine.services.result_store import ResultStore
from profiling_engine.services.source_provider import SourceProvider

logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(
        self,
        jobs: JobStateMachine,
        source: SourceProvider,
        results: ResultStore,
        config: Settings = settings,
        profiler: Optional[DatasetProfiler] = None,
    ):
        self.jobs = jobs
        self.source = source
        self.results = results
        self.config = config
        self.profiler = profiler or DatasetProfiler(config)

        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._futures: Dict[str, "asyncio.Future[Job]"] = {}
        self._workers: List[asyncio.Task] = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> None:
        if self._workers:
            return
        for i in range(self.config.max_concurrent_jobs):
            self._workers.append(asyncio.create_task(self._worker(i), name=f"profiling-worker-{i}"))
        logger.info("Started %d profiling workers", len(self._workers))

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # Whatever is left never started; its record is still queued
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        for fut in self._futures.values():
            fut.cancel()
        self._futures.clear()
        logger.info("Stopped profiling workers (%d queued jobs left for the next start)", dropped)

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------
    def submit(self, job_id: str) -> "asyncio.Future[Job]":
        """
        Enqueue a queued job and return a future resolved with its terminal record.

        While a job id is pending, submitting it again returns the same
        future. Once it has run, a repeat submit is rejected by the start
        transition and the new future carries the conflict.
        """
        existing = self._futures.get(job_id)
        if existing is not None:
            return existing
        fut: "asyncio.Future[Job]" = asyncio.get_running_loop().create_future()
        self._futures[job_id] = fut
        self._queue.put_nowait(job_id)
        return fut

    def _resolve(self, job_id: str, job: Optional[Job] = None, exc: Optional[BaseException] = None) -> None:
        fut = self._futures.get(job_id)
        if fut is None or fut.done():
            return
        if exc is not None:
            fut.set_exception(exc)
            # Callers are not required to await the future
            fut.exception()
        else:
            fut.set_result(job)

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self.run_job(job_id)
            except Exception as e:
                # Bookkeeping failed (e.g. job store down); keep the worker alive
                logger.exception("[Job-%s] Worker %d could not record job outcome", job_id, index)
                self._resolve(job_id, exc=e)
            finally:
                self._futures.pop(job_id, None)
                self._queue.task_done()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------
    async def _load_with_retry(self, job: Job) -> Table:
        attempt = 0
        while True:
            try:
                return await self.source.load(job.file_ref)
            except SourceUnavailable as e:
                if attempt >= self.config.max_retries:
                    logger.error("[Job-%s] Source still unavailable after %d retries", job.id, attempt)
                    raise
                delay = min(
                    self.config.retry_backoff_seconds * (2 ** attempt),
                    self.config.retry_backoff_max_seconds,
                )
                attempt += 1
                logger.warning(
                    "[Job-%s] Source unavailable (retry %d/%d in %.2fs): %s",
                    job.id,
                    attempt,
                    self.config.max_retries,
                    delay,
                    e.message,
                )
                await asyncio.sleep(delay)

    async def _execute(self, job: Job, cancel: threading.Event) -> DatasetProfile:
        table = await self._load_with_retry(job)
        logger.info("[Job-%s] Loaded %d rows x %d columns", job.id, table.row_count, len(table))
        return await asyncio.to_thread(self.profiler.profile, table, cancel)

    async def run_job(self, job_id: str) -> Optional[Job]:
        """
        Run one job to a terminal state.

        Returns the terminal job, or None when the job could not be started
        (unknown id, or it was not queued).
        """
        try:
            job = await self.jobs.start(job_id)
        except (ConflictingTransition, JobNotFound) as e:
            logger.warning("[Job-%s] Not started: %s", job_id, e.message)
            self._resolve(job_id, exc=e)
            return None

        timeout = self.config.job_timeout_seconds
        cancel = threading.Event()
        try:
            profile = await asyncio.wait_for(self._execute(job, cancel), timeout=timeout)
        except asyncio.CancelledError:
            cancel.set()
            logger.warning("[Job-%s] Worker stopped mid-run", job_id)
            final = await self.jobs.fail(
                job_id, FailureReason.INTERNAL_ERROR, "Worker stopped before the job finished"
            )
            self._resolve(job_id, final)
            raise
        except asyncio.TimeoutError:
            cancel.set()
            final = await self.jobs.fail(
                job_id, FailureReason.TIMEOUT, f"Job exceeded its execution budget of {timeout}s"
            )
        except ProfilingError as e:
            final = await self.jobs.fail(job_id, e.reason or FailureReason.INTERNAL_ERROR, e.message)
        except Exception as e:
            logger.exception("[Job-%s] Unexpected error while profiling", job_id)
            final = await self.jobs.fail(job_id, FailureReason.INTERNAL_ERROR, f"{type(e).__name__}: {e}")
        else:
            final = await self.jobs.complete(job_id, profile)
            await self.results.put(job_id, profile)

        self._resolve(job_id, final)
        return final
