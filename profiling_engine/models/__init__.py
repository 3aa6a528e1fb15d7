from profiling_engine.models.jobs import FailureReason, Job, JobFailure, JobStatus
from profiling_engine.models.profile import (
    ColumnProfile,
    ColumnType,
    DatasetProfile,
    DateStats,
    FrequentValue,
    NumericStats,
)
from profiling_engine.models.table import RawColumn, Table

__all__ = [
    "ColumnProfile",
    "ColumnType",
    "DatasetProfile",
    "DateStats",
    "FailureReason",
    "FrequentValue",
    "Job",
    "JobFailure",
    "JobStatus",
    "NumericStats",
    "RawColumn",
    "Table",
]
