from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RawColumn:
    """One column as loaded from source: a name and its raw cell strings (None = missing)."""

    name: str
    values: Tuple[Optional[str], ...]

    @classmethod
    def of(cls, name: str, values: Sequence[Optional[str]]) -> "RawColumn":
        return cls(name=name, values=tuple(values))

    @property
    def row_count(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class Table:
    columns: Tuple[RawColumn, ...]

    @classmethod
    def of(cls, columns: Sequence[RawColumn]) -> "Table":
        names = [c.name for c in columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names in table: {names}")
        return cls(columns=tuple(columns))

    @property
    def row_count(self) -> int:
        return self.columns[0].row_count if self.columns else 0

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def __iter__(self) -> Iterator[RawColumn]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)
