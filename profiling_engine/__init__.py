"""Data profiling engine: column classification, statistics and profiling jobs."""

__version__ = "1.0.0"
