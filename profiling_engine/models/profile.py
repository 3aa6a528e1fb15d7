from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class ColumnType(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATE = "date"
    TEXT = "text"


class FrequentValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    count: int


class NumericStats(BaseModel):
    """Numeric summary; every field is None when the column has no parseable value."""

    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    std_dev: Optional[float] = None
    percentile_25: Optional[float] = None
    percentile_75: Optional[float] = None


class DateStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Optional[date] = None
    max: Optional[date] = None


class ColumnProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    column_type: ColumnType
    row_count: int = 0
    null_count: int = 0
    unique_count: int = 0
    # Non-null values that did not parse for the assigned type (diagnostic only)
    unparsed_count: int = 0
    frequent_values: List[FrequentValue] = Field(default_factory=list)

    numeric_stats: Optional[NumericStats] = None
    date_stats: Optional[DateStats] = None
    date_format: Optional[str] = None

    @model_validator(mode="after")
    def _payload_matches_type(self) -> "ColumnProfile":
        is_numeric = self.column_type == ColumnType.NUMERIC
        is_date = self.column_type == ColumnType.DATE
        if (self.numeric_stats is not None) != is_numeric:
            raise ValueError(f"numeric stats must be present only on numeric columns ({self.name})")
        if (self.date_stats is not None) != is_date:
            raise ValueError(f"date stats must be present only on date columns ({self.name})")
        if self.date_format is not None and not is_date:
            raise ValueError(f"date_format is only valid on date columns ({self.name})")
        if self.null_count + self.unique_count > self.row_count:
            raise ValueError(f"null_count + unique_count exceeds row_count ({self.name})")
        return self


class DatasetProfile(BaseModel):
    """
    Profile of a whole table.

    `columns` keeps source column order. `type_index` and `summary_text` are
    derived from `columns` on every access, so they cannot drift from it.
    """

    model_config = ConfigDict(frozen=True)

    row_count: int
    column_count: int
    columns: List[ColumnProfile] = Field(default_factory=list)

    # "<a>-<b>" -> Pearson r, numeric column pairs in source order
    correlations: Dict[str, float] = Field(default_factory=dict)

    @computed_field  # type: ignore[misc]
    @property
    def type_index(self) -> Dict[ColumnType, List[str]]:
        index: Dict[ColumnType, List[str]] = {t: [] for t in ColumnType}
        for col in self.columns:
            index[col.column_type].append(col.name)
        return index

    @computed_field  # type: ignore[misc]
    @property
    def summary_text(self) -> str:
        idx = self.type_index
        return (
            f"Dataset has {self.row_count} rows and {self.column_count} columns "
            f"({len(idx[ColumnType.NUMERIC])} numeric, "
            f"{len(idx[ColumnType.CATEGORICAL])} categorical, "
            f"{len(idx[ColumnType.DATE])} date, "
            f"{len(idx[ColumnType.TEXT])} text)."
        )

    def column(self, name: str) -> Optional[ColumnProfile]:
        for col in self.columns:
            if col.name == name:
                return col
        return None
