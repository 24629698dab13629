from __future__ import annotations

import json
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from attendance_merge.reconcile import ANALYZED_MARKER_HEADER, CONSUMED_MARKER_HEADER, ERROR_HEADER
from attendance_merge.table import Table

OUTPUT_FORMATS = {".xlsx", ".csv", ".json"}

HEADER_COLOR = "1565C0"   # blue
MARKER_COLOR = "E53935"   # red
SHEET_TITLE = "Data"


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _json_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return stringify(value)


def _style_header(ws, headers: list[str], col_widths: list[int]) -> None:
    """Bold white header, frozen first row, and column widths."""
    font = Font(bold=True, color="FFFFFF")
    for i, cell in enumerate(ws[1]):
        color = MARKER_COLOR if headers[i] in (CONSUMED_MARKER_HEADER, ANALYZED_MARKER_HEADER, ERROR_HEADER) else HEADER_COLOR
        cell.font = font
        cell.fill = PatternFill("solid", fgColor=color)
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(stringify(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row[: len(widths)]):
            widths[i] = max(widths[i], min(max_width, len(stringify(val)) + 2))
    return widths


def _write_xlsx(table: Table, output_path: Path) -> None:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(list(table.headers))
    for row in table.rows:
        ws.append(list(row))
    if table.headers:
        _style_header(ws, list(table.headers), _infer_col_widths([list(table.headers), *table.rows]))
    wb.save(output_path)


def _write_csv(table: Table, output_path: Path) -> None:
    frame = pd.DataFrame(
        [[stringify(value) for value in row] for row in table.rows],
        columns=list(table.headers),
    )
    frame.to_csv(output_path, index=False, encoding="utf-8-sig")


def _write_json(table: Table, output_path: Path) -> None:
    payload = {
        "headers": list(table.headers),
        "rows": [[_json_value(value) for value in row] for row in table.rows],
    }
    output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def write_table(table: Table, output_path: "str | Path") -> Path:
    output_path = Path(output_path)
    suffix = output_path.suffix.lower()
    if suffix not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format '{suffix}'. Supported: {', '.join(sorted(OUTPUT_FORMATS))}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".xlsx":
        _write_xlsx(table, output_path)
    elif suffix == ".csv":
        _write_csv(table, output_path)
    else:
        _write_json(table, output_path)
    return output_path
