"""
Dataset Profiling Module

Builds a DatasetProfile from a loaded table:
- Classifies every column (numeric / categorical / date / text)
- Computes per-column statistics for the assigned type
- Computes pairwise correlations between numeric columns

Output is deterministic: the same table always yields an identical profile,
which is what makes cached profiles safe to serve.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from profiling_engine.config import Settings, settings
from profiling_engine.engine import statistics
from profiling_engine.engine.classifier import classify_column
from profiling_engine.errors import ProfilingCancelled
from profiling_engine.models.profile import ColumnProfile, ColumnType, DatasetProfile
from profiling_engine.models.table import RawColumn, Table

logger = logging.getLogger(__name__)


class DatasetProfiler:
    def __init__(self, config: Settings = settings):
        self.config = config

    def profile_column(self, column: RawColumn) -> ColumnProfile:
        """Classify one column, then compute the statistics for its type."""
        classification = classify_column(column.name, column.values, self.config)
        return statistics.compute(
            column.name,
            column.values,
            classification.column_type,
            classification.date_format,
            self.config,
        )

    def profile(self, table: Table, cancel: Optional[threading.Event] = None) -> DatasetProfile:
        """
        Profile every column of `table` in source order.

        Args:
            table: Loaded table; never mutated.
            cancel: Optional signal checked between columns. When set, profiling
                stops with ProfilingCancelled and nothing partial is returned.

        Returns:
            DatasetProfile whose column order matches the table's.
        """
        # =====================================================================
        # STEP 1: Classify + compute statistics per column
        # =====================================================================
        columns: List[ColumnProfile] = []
        for column in table:
            if cancel is not None and cancel.is_set():
                raise ProfilingCancelled(f"Profiling cancelled after {len(columns)} of {len(table)} columns")
            columns.append(self.profile_column(column))

        # =====================================================================
        # STEP 2: Correlations between numeric columns
        # =====================================================================
        numeric = [
            (column.name, column.values)
            for column, col_profile in zip(table, columns)
            if col_profile.column_type == ColumnType.NUMERIC
        ]
        correlations = statistics.correlations(numeric)

        result = DatasetProfile(
            row_count=table.row_count,
            column_count=len(table),
            columns=columns,
            correlations=correlations,
        )
        logger.debug("Profiled table: %s", result.summary_text)
        return result


def profile(table: Table, config: Settings = settings, cancel: Optional[threading.Event] = None) -> DatasetProfile:
    return DatasetProfiler(config).profile(table, cancel)
