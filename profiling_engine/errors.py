"""Error taxonomy for profiling jobs.

Only table-level and infrastructure failures are raised; a value that does
not parse for its column type is counted, never raised.
"""

from __future__ import annotations

from typing import Optional

from profiling_engine.models.jobs import FailureReason, JobStatus


class ProfilingError(Exception):
    reason: Optional[FailureReason] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SourceUnavailable(ProfilingError):
    """Transient: the source could not be fetched right now. Retried."""

    reason = FailureReason.SOURCE_UNAVAILABLE


class MalformedSource(ProfilingError):
    """The source cannot be parsed into columns at all. Never retried."""

    reason = FailureReason.MALFORMED_SOURCE


class JobTimeout(ProfilingError):
    reason = FailureReason.TIMEOUT


class ProfilingCancelled(ProfilingError):
    """Raised inside the profiler when its cancel signal is set."""

    reason = FailureReason.TIMEOUT


class JobNotFound(ProfilingError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class ConflictingTransition(ProfilingError):
    def __init__(self, job_id: str, expected: JobStatus, actual: Optional[JobStatus], target: JobStatus):
        actual_s = actual.value if actual is not None else "missing"
        super().__init__(
            f"Job {job_id}: cannot move to {target.value}, "
            f"expected status {expected.value} but found {actual_s}"
        )
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
        self.target = target
