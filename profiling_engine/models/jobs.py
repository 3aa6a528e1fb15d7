from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from profiling_engine.models.profile import DatasetProfile


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class FailureReason(str, Enum):
    SOURCE_UNAVAILABLE = "source_unavailable"
    MALFORMED_SOURCE = "malformed_source"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


class JobFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: FailureReason
    message: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """
    A profiling job record.

    `profile` is set iff the job is completed, `failure` iff it failed.
    Records are immutable; every status change produces a new record.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    file_ref: str
    user_id: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    profile: Optional[DatasetProfile] = None
    failure: Optional[JobFailure] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _payload_matches_status(self) -> "Job":
        if (self.profile is not None) != (self.status == JobStatus.COMPLETED):
            raise ValueError("profile must be present iff the job is completed")
        if (self.failure is not None) != (self.status == JobStatus.FAILED):
            raise ValueError("failure must be present iff the job has failed")
        return self


# -------------------------
# HTTP payloads
# -------------------------
class JobCreateRequest(BaseModel):
    file_ref: str
    user_id: Optional[str] = None


class JobAcceptedResponse(BaseModel):
    job_id: str
    status: JobStatus


class JobStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    file_ref: str
    created_at: datetime
    updated_at: datetime
    failure: Optional[JobFailure] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            file_ref=job.file_ref,
            created_at=job.created_at,
            updated_at=job.updated_at,
            failure=job.failure,
        )


class JobProfileResponse(BaseModel):
    job_id: str
    status: JobStatus
    message: Optional[str] = None
    profile: Optional[DatasetProfile] = None
