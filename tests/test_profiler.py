"""
Unit tests for dataset profiling
"""

import threading

import pytest

from profiling_engine.engine.profiler import DatasetProfiler, profile
from profiling_engine.errors import ProfilingCancelled
from profiling_engine.models.profile import ColumnType, DatasetProfile
from profiling_engine.models.table import RawColumn, Table
from profiling_engine.services.source_provider import parse_csv
from tests.conftest import PEOPLE_CSV


@pytest.fixture
def table() -> Table:
    return parse_csv(PEOPLE_CSV)


class TestDatasetProfiler:
    def test_columns_keep_source_order_and_types(self, table):
        result = profile(table)

        assert [c.name for c in result.columns] == ["age", "gender", "joined", "notes"]
        assert [c.column_type for c in result.columns] == [
            ColumnType.NUMERIC,
            ColumnType.CATEGORICAL,
            ColumnType.DATE,
            ColumnType.TEXT,
        ]
        assert result.row_count == 5
        assert result.column_count == 4

    def test_type_index_matches_columns(self, table):
        result = profile(table)

        assert result.type_index == {
            ColumnType.NUMERIC: ["age"],
            ColumnType.CATEGORICAL: ["gender"],
            ColumnType.DATE: ["joined"],
            ColumnType.TEXT: ["notes"],
        }
        assert result.summary_text == (
            "Dataset has 5 rows and 4 columns (1 numeric, 1 categorical, 1 date, 1 text)."
        )

    def test_profile_is_deterministic(self, table):
        first = profile(table)
        second = DatasetProfiler().profile(parse_csv(PEOPLE_CSV))

        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_serialization_round_trip(self, table):
        result = profile(table)
        assert DatasetProfile.model_validate_json(result.model_dump_json()) == result

    def test_counts_never_exceed_row_count(self, table):
        for col in profile(table).columns:
            assert col.null_count + col.unique_count <= col.row_count

    def test_null_cells_counted(self, table):
        result = profile(table)
        assert result.column("age").null_count == 1
        assert result.column("notes").null_count == 1

    def test_correlations_only_between_numeric_columns(self):
        t = Table.of(
            [
                RawColumn.of("x", ["1", "2", "3"]),
                RawColumn.of("label", ["a", "a", "b"]),
                RawColumn.of("y", ["3", "2", "1"]),
            ]
        )
        assert profile(t).correlations == {"x-y": -1.0}

    def test_cancel_signal_discards_work(self, table):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ProfilingCancelled):
            profile(table, cancel=cancel)

    def test_empty_table(self):
        result = profile(Table.of([]))
        assert result.columns == []
        assert result.row_count == 0
