"""Profiling engine: column classification, column statistics and dataset profiles."""
