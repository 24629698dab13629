from __future__ import annotations

import re
from typing import Any, Sequence

from attendance_merge.columns import fold_headers, fold_text, resolve_column
from attendance_merge.config import DEFAULT_CONFIG, ROLE_SUBJECT_ID, ReconcileConfig
from attendance_merge.table import Table, check_table, has_headers, normalize_rows

DIGIT_RUN_RE = re.compile(r"(\d+)")


def natural_sort_key(value: Any) -> tuple:
    """
    Locale-aware, numeric-aware key: digit runs compare as numbers and sort
    before letters, text runs compare case- and diacritic-insensitively.
    """
    text = "" if value is None else str(value).strip()
    key = []
    for part in DIGIT_RUN_RE.split(fold_text(text)):
        if not part:
            continue
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


def _remap_rows(
    rows: list[list[Any]],
    source_headers: list[str],
    output_headers: list[str],
) -> tuple[list[list[Any]], list[str], list[int]]:
    output_positions: dict[str, int] = {}
    for idx, header in enumerate(output_headers):
        output_positions.setdefault(header, idx)

    mapping: list[tuple[int, int]] = []
    dropped: list[str] = []
    used: set[int] = set()
    for src_idx, header in enumerate(source_headers):
        dst_idx = output_positions.get(header)
        if dst_idx is None or dst_idx in used:
            dropped.append(header or f"[col {src_idx + 1}]")
            continue
        used.add(dst_idx)
        mapping.append((src_idx, dst_idx))

    missing = [idx for idx in range(len(output_headers)) if idx not in used]
    width = len(output_headers)
    remapped = []
    for row in rows:
        new_row: list[Any] = [""] * width
        for src_idx, dst_idx in mapping:
            new_row[dst_idx] = row[src_idx]
        remapped.append(new_row)
    return remapped, dropped, missing


def merge_tables(tables: Sequence[Table], *, config: ReconcileConfig | None = None) -> Table:
    """
    Combine source tables into one table with the first table's schema.

    Later tables whose headers differ (order or labels, compared
    case/diacritic-insensitively) are remapped column by column. The result is
    stably sorted by the subject-id column when one can be resolved.
    """
    config = config or DEFAULT_CONFIG
    warnings: list[str] = []
    output_headers: list[str] = []
    folded_output: list[str] = []
    all_rows: list[list[Any]] = []

    for table in tables:
        check_table(table)
        if not has_headers(table):
            if table.rows:
                warnings.append(f"{table.label} has no header row; skipped")
            continue

        warnings.extend(table.warnings)
        rows = normalize_rows(table, warnings)

        if not output_headers:
            output_headers = ["" if h is None else str(h).strip() for h in table.headers]
            folded_output = fold_headers(output_headers)
            all_rows.extend(rows)
            continue

        folded_source = fold_headers(table.headers)
        if folded_source == folded_output:
            all_rows.extend(rows)
            continue

        remapped, dropped, missing = _remap_rows(rows, folded_source, folded_output)
        all_rows.extend(remapped)
        detail = []
        if dropped:
            detail.append(f"dropped columns: {', '.join(dropped)}")
        if missing:
            detail.append(f"left empty: {', '.join(output_headers[idx] for idx in missing)}")
        warnings.append(
            f"{table.label} has a different column layout; rows were matched to the first "
            f"table's headers" + (f" ({'; '.join(detail)})" if detail else "")
        )

    if not output_headers:
        return Table(headers=[], rows=[], source="merged", warnings=warnings)

    subject_idx = resolve_column(
        output_headers, ROLE_SUBJECT_ID, synonyms=config.role_synonyms, warnings=warnings
    )
    if subject_idx is None:
        warnings.append("Rows were not sorted because no subject-id column was found")
    else:
        all_rows.sort(key=lambda row: natural_sort_key(row[subject_idx]))

    return Table(headers=output_headers, rows=all_rows, source="merged", warnings=warnings)
