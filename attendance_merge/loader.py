"""
loader.py: read one source export into a Table

Supports: .csv .tsv .txt .xlsx .xlsm .xls .ods

Only the first worksheet of a workbook is read; its first row is the header
row. Blank cells become "". Workbook cells keep their native values (numbers,
datetimes, times) so the date parser can use them directly; delimited text is
read as strings.

Public API:
    table = load_table("path/to/export.xlsx")
    tables = load_tables([...])
"""

from __future__ import annotations

import csv
import io
import math
from collections import Counter
from pathlib import Path
from typing import Any, Iterable

import chardet
import pandas as pd

from attendance_merge.table import Table, normalize_rows

TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw[:200_000])
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", "").replace("\ufeff", ""))
    return "\n".join(decoded_lines)


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines: csv.Sniffer first, then the
    candidate giving the most consistent multi-column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])
    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [row for row in csv.reader(io.StringIO(sample), delimiter=delim) if any(c.strip() for c in row)]
        if not rows:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# CELL / FRAME CONVERSION
# ══════════════════════════════════════════════════════════════════════════════

def _clean_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, str):
        return value.replace("\x00", "").replace("\ufeff", "").strip()
    return value


def _is_blank_row(row: list[Any]) -> bool:
    return all(isinstance(cell, str) and not cell.strip() for cell in row)


def _frame_to_table(df: pd.DataFrame, source: str, warnings: list[str]) -> Table:
    records = [[_clean_cell(value) for value in row] for row in df.itertuples(index=False, name=None)]
    records = [row for row in records if not _is_blank_row(row)]
    if not records:
        warnings.append(f"{source} is empty or contains no data")
        return Table(headers=[], rows=[], source=source, warnings=warnings)
    headers = ["" if cell == "" else str(cell).strip() for cell in records[0]]
    # The header row fixes the width; longer data rows are truncated with a warning.
    while headers and not headers[-1]:
        headers.pop()
    rows = normalize_rows(Table(headers=headers, rows=records[1:], source=source), warnings)
    return Table(headers=headers, rows=rows, source=source, warnings=warnings)


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(path: Path, suffix: str) -> Table:
    raw = path.read_bytes()
    text = _read_text_safely(raw, _detect_encoding(raw))
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    sep = r"\|" if delimiter == "|" else delimiter
    # Name every column up front so rows wider than the first line are kept.
    width = max((len(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)), default=0)
    if not width:
        return _frame_to_table(pd.DataFrame(), path.name, [])
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            sep=sep,
            engine="python",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        df = pd.DataFrame()
    except Exception as exc:
        raise ValueError(f"Could not parse {suffix} file: {exc}") from exc
    return _frame_to_table(df, path.name, [])


def _require_reader(suffix: str) -> str | None:
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd. Install with: pip install xlrd")
        return "xlrd"
    if suffix == ".ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy. Install with: pip install odfpy")
        return "odf"
    return None


def _load_workbook(path: Path, suffix: str) -> Table:
    engine = _require_reader(suffix)
    warnings: list[str] = []
    try:
        with pd.ExcelFile(path, engine=engine) as xf:
            sheet_names = list(xf.sheet_names)
            if not sheet_names:
                warnings.append(f"{path.name} has no worksheet to read")
                return Table(headers=[], rows=[], source=path.name, warnings=warnings)
            df = xf.parse(sheet_names[0], header=None, dtype=object)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc

    if len(sheet_names) > 1:
        warnings.append(
            f"{path.name}: multiple sheets found ({len(sheet_names)} total); "
            f"used '{sheet_names[0]}'. Ignored: {sheet_names[1:]}"
        )
    return _frame_to_table(df, path.name, warnings)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_table(path: "str | Path") -> Table:
    """
    Load the first worksheet (or the delimited text) of a file into a Table.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported or unreadable.
        ImportError        if a required optional reader is missing.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

    if suffix in TEXT_FORMATS:
        return _load_text(path, suffix)
    return _load_workbook(path, suffix)


def load_tables(paths: Iterable["str | Path"]) -> list[Table]:
    return [load_table(path) for path in paths]
