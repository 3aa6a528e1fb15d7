"""
Per-column statistics.

`compute` is a pure function of one column's raw values and its assigned type.
Numeric summaries use sample standard deviation (ddof=1) and linear
interpolation between closest ranks for the median and quartiles (numpy's
default percentile method). All numeric results are rounded to 2 decimals.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from profiling_engine.config import Settings, settings
from profiling_engine.engine.classifier import is_missing, parse_date, parse_number, present_values
from profiling_engine.models.profile import (
    ColumnProfile,
    ColumnType,
    DateStats,
    FrequentValue,
    NumericStats,
)


def _round2(x: float) -> float:
    return round(float(x), 2)


def _finite2(x: Optional[float]) -> Optional[float]:
    """Rounded value, or None when the aggregate overflowed to inf/nan."""
    if x is None or not np.isfinite(x):
        return None
    return _round2(x)


def frequent_values(values: Sequence[str], top_n: int) -> List[FrequentValue]:
    """Top-N values by count; equal counts keep first-seen order."""
    return [FrequentValue(value=v, count=c) for v, c in Counter(values).most_common(top_n)]


def numeric_summary(numbers: Sequence[float]) -> NumericStats:
    if not numbers:
        return NumericStats()

    arr = np.asarray(numbers, dtype=float)
    # Values near the float limit are valid inputs but their sums and
    # interpolations can overflow; those aggregates are reported as absent.
    with np.errstate(over="ignore", invalid="ignore"):
        p25, median, p75 = np.percentile(arr, [25, 50, 75])
        mean = arr.mean()
        std = np.std(arr, ddof=1) if arr.size > 1 else None

    return NumericStats(
        min=_round2(arr.min()),
        max=_round2(arr.max()),
        mean=_finite2(mean),
        median=_finite2(median),
        std_dev=_finite2(std),
        percentile_25=_finite2(p25),
        percentile_75=_finite2(p75),
    )


def date_summary(values: Sequence[str], date_format: Optional[str]) -> Tuple[DateStats, int]:
    """Min/max in calendar order plus the count of values the format could not parse."""
    if date_format is None:
        return DateStats(), len(values)
    parsed = [d for d in (parse_date(v, date_format) for v in values) if d is not None]
    if not parsed:
        return DateStats(), len(values)
    return DateStats(min=min(parsed), max=max(parsed)), len(values) - len(parsed)


def compute(
    column_name: str,
    raw_values: Sequence[Optional[str]],
    column_type: ColumnType,
    date_format: Optional[str] = None,
    config: Settings = settings,
) -> ColumnProfile:
    values = present_values(raw_values)

    numeric_stats = None
    date_stats = None
    unparsed = 0

    if column_type == ColumnType.NUMERIC:
        numbers = [n for n in (parse_number(v) for v in values) if n is not None]
        numeric_stats = numeric_summary(numbers)
        unparsed = len(values) - len(numbers)
    elif column_type == ColumnType.DATE:
        date_stats, unparsed = date_summary(values, date_format)

    return ColumnProfile(
        name=column_name,
        column_type=column_type,
        row_count=len(raw_values),
        null_count=sum(1 for v in raw_values if is_missing(v)),
        unique_count=len(set(values)),
        unparsed_count=unparsed,
        frequent_values=frequent_values(values, config.top_n),
        numeric_stats=numeric_stats,
        date_stats=date_stats,
        date_format=date_format if column_type == ColumnType.DATE else None,
    )


def _pearson(xs: np.ndarray, ys: np.ndarray) -> Optional[float]:
    with np.errstate(over="ignore", invalid="ignore"):
        dx = xs - xs.mean()
        dy = ys - ys.mean()
        denom = float(np.sqrt((dx * dx).sum() * (dy * dy).sum()))
        num = float((dx * dy).sum())
    if denom == 0.0 or not np.isfinite(denom) or not np.isfinite(num):
        return None
    r = num / denom
    # Float error can push |r| marginally past 1
    return max(-1.0, min(1.0, r))


def correlations(numeric_columns: Sequence[Tuple[str, Sequence[Optional[str]]]]) -> Dict[str, float]:
    """
    Pairwise Pearson correlation between numeric columns, keyed "<a>-<b>" in
    source order. Only rows where both values parse are used; pairs with
    fewer than two such rows or zero variance are omitted.
    """
    parsed = [
        (name, [parse_number(v) if not is_missing(v) else None for v in values])
        for name, values in numeric_columns
    ]

    out: Dict[str, float] = {}
    for i in range(len(parsed)):
        for j in range(i + 1, len(parsed)):
            name_a, col_a = parsed[i]
            name_b, col_b = parsed[j]
            pairs = [(a, b) for a, b in zip(col_a, col_b) if a is not None and b is not None]
            if len(pairs) < 2:
                continue
            arr = np.asarray(pairs, dtype=float)
            r = _pearson(arr[:, 0], arr[:, 1])
            if r is not None:
                out[f"{name_a}-{name_b}"] = round(r, 4)
    return out
