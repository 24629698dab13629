from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass
class Table:
    headers: list[str]
    rows: list[list[Any]]
    source: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.headers)

    @property
    def label(self) -> str:
        return self.source or "[unnamed table]"

    def to_dict(self) -> dict[str, Any]:
        return {"headers": list(self.headers), "rows": [list(row) for row in self.rows]}


def check_table(table: Table) -> None:
    if not isinstance(table.headers, (list, tuple)):
        raise TypeError(f"Table headers must be a list, got {type(table.headers).__name__}")
    if not isinstance(table.rows, (list, tuple)):
        raise TypeError(f"Table rows must be a list, got {type(table.rows).__name__}")
    for row_num, row in enumerate(table.rows, start=1):
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            raise TypeError(f"Row {row_num} of {table.label} is not a sequence of cells")


def pad_row(row: Sequence[Any], width: int) -> list[Any]:
    cells = list(row[:width])
    if len(cells) < width:
        cells.extend([""] * (width - len(cells)))
    return cells


def normalize_rows(table: Table, warnings: list[str] | None = None) -> list[list[Any]]:
    """Copy of the rows padded with empty strings (or truncated) to the header width."""
    check_table(table)
    width = table.width
    normalized: list[list[Any]] = []
    overflow = 0
    for row in table.rows:
        if len(row) > width and any(str(cell).strip() for cell in row[width:] if cell is not None):
            overflow += 1
        normalized.append(pad_row(row, width))
    if overflow and warnings is not None:
        warnings.append(
            f"{overflow} row(s) in {table.label} had more cells than headers; extra cells were dropped"
        )
    return normalized


def has_headers(table: Table) -> bool:
    return any(str(header).strip() for header in table.headers if header is not None)
