"""
Column type inference.

Classifies a column of raw CSV strings as numeric, date, categorical or text.
Precedence when several rules could apply: numeric > date > categorical > text.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence

from profiling_engine.config import Settings, settings
from profiling_engine.models.profile import ColumnType

# Optional sign, digits, optional decimal point, optional exponent. No
# thousands separators or currency symbols: values like "1,200" are not numbers.
NUMERIC_RE = re.compile(r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$")

# Whole name tokens (split on anything not a letter or digit) hinting at dates.
# "at" covers created_at / joined_at style names.
DATE_NAME_TOKENS = frozenset({"date", "dob", "joined", "at", "timestamp", "birthday"})

# Tried in this order; the first format matched by enough values wins.
DATE_FORMATS = (
    "%Y-%m-%d",    # ISO 2023-01-31
    "%m/%d/%Y",    # US 01/31/2023
    "%d/%m/%Y",    # European 31/01/2023
    "%d-%b-%Y",    # 31-Jan-2023
    "%d %b %Y",    # 31 Jan 2023
    "%b %d, %Y",   # Jan 31, 2023
    "%d %B %Y",    # 31 January 2023
    "%B %d, %Y",   # January 31, 2023
)


@dataclass(frozen=True)
class Classification:
    column_type: ColumnType
    # Format used to parse a date column; None for every other type
    date_format: Optional[str] = None


def is_missing(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def present_values(values: Sequence[Optional[str]]) -> List[str]:
    """Non-missing values, whitespace-trimmed, in source order."""
    return [v.strip() for v in values if not is_missing(v)]


def parse_number(value: str) -> Optional[float]:
    s = value.strip()
    if not NUMERIC_RE.match(s):
        return None
    number = float(s)
    # "1e999" matches the grammar but overflows
    return number if math.isfinite(number) else None


def parse_date(value: str, fmt: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), fmt).date()
    except ValueError:
        return None


def name_suggests_date(column_name: str) -> bool:
    tokens = re.split(r"[^a-z0-9]+", column_name.lower())
    return any(tok in DATE_NAME_TOKENS for tok in tokens)


def detect_date_format(values: Sequence[str], threshold: float) -> Optional[str]:
    """Return the first format (priority order) that parses at least `threshold` of values."""
    if not values:
        return None
    for fmt in DATE_FORMATS:
        hits = sum(1 for v in values if parse_date(v, fmt) is not None)
        if hits / len(values) >= threshold:
            return fmt
    return None


def best_date_format(values: Sequence[str]) -> Optional[str]:
    """Format matching the most values, earlier formats winning ties. None if nothing parses."""
    best_fmt, best_hits = None, 0
    for fmt in DATE_FORMATS:
        hits = sum(1 for v in values if parse_date(v, fmt) is not None)
        if hits > best_hits:
            best_fmt, best_hits = fmt, hits
    return best_fmt


def classify_column(
    column_name: str,
    raw_values: Sequence[Optional[str]],
    config: Settings = settings,
) -> Classification:
    values = present_values(raw_values)

    # All-null columns carry no signal
    if not values:
        return Classification(ColumnType.TEXT)

    numeric_hits = sum(1 for v in values if parse_number(v) is not None)
    if numeric_hits / len(values) >= config.numeric_threshold:
        return Classification(ColumnType.NUMERIC)

    fmt = detect_date_format(values, config.date_threshold)
    if fmt is not None:
        return Classification(ColumnType.DATE, fmt)
    if name_suggests_date(column_name):
        return Classification(ColumnType.DATE, best_date_format(values))

    unique_count = len(set(values))
    unique_ratio = unique_count / len(raw_values)
    if unique_ratio <= config.categorical_max_ratio and unique_count <= config.categorical_max_unique:
        return Classification(ColumnType.CATEGORICAL)
    return Classification(ColumnType.TEXT)


def classify(column_name: str, raw_values: Sequence[Optional[str]], config: Settings = settings) -> ColumnType:
    """Infer the semantic type of a single column from its name and raw values."""
    return classify_column(column_name, raw_values, config).column_type
