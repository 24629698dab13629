"""
Deletion/entry reconciliation.

Every deletion record is matched to the earliest not-yet-used entry record
of the same person on the same calendar day. The matched entry's action text
and time are folded into the deletion row and the entry row is marked as
consumed so it can explain at most one deletion.

The transform runs in two passes over a read-only input: entries are indexed
per (subject-id, day) first, because a deletion may refer to an entry that
appears later in row order; deletions are then matched in original row order.
Output rows are new lists; the input table is never mutated.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable

from attendance_merge.columns import fold_text, resolve_columns
from attendance_merge.config import (
    DEFAULT_CONFIG,
    REQUIRED_ROLES,
    ROLE_ACTION,
    ROLE_DATE,
    ROLE_SUBJECT_ID,
    ROLE_TIME,
    ReconcileConfig,
)
from attendance_merge.dates import find_time_in_text, format_hms, parse_datetime, parse_time_of_day
from attendance_merge.table import Table, normalize_rows

CONSUMED_MARKER_HEADER = "analysis:entry_consumed"
ANALYZED_MARKER_HEADER = "analysis:deletion_analyzed"
ERROR_HEADER = "analysis:error"

ACTION_ENTRY = "entry"
ACTION_EXIT = "exit"
ACTION_DELETION = "deletion"
ACTION_OTHER = "other"

ROLE_LABELS = {
    ROLE_SUBJECT_ID: "subject id",
    ROLE_DATE: "date",
    ROLE_ACTION: "action",
}

GroupKey = tuple[str, date]
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class EventRecord:
    row_index: int
    timestamp: datetime
    action: str
    action_text: str


def classify_action(text: Any, config: ReconcileConfig = DEFAULT_CONFIG) -> str:
    folded = fold_text(text)
    if not folded:
        return ACTION_OTHER
    for kind, synonyms in (
        (ACTION_DELETION, config.deletion_synonyms),
        (ACTION_EXIT, config.exit_synonyms),
        (ACTION_ENTRY, config.entry_synonyms),
    ):
        if any(fold_text(word) in folded for word in synonyms if fold_text(word)):
            return kind
    return ACTION_OTHER


def group_key(
    row: list[Any],
    subject_idx: int,
    date_idx: int,
    config: ReconcileConfig = DEFAULT_CONFIG,
) -> GroupKey | None:
    subject = row[subject_idx]
    subject = "" if subject is None else str(subject).strip()
    if not subject:
        return None
    parsed = parse_datetime(row[date_idx], formats=config.date_formats)
    if parsed is None:
        return None
    return subject, parsed.date()


def event_time(
    row: list[Any],
    time_idx: int | None,
    action_idx: int,
    config: ReconcileConfig = DEFAULT_CONFIG,
) -> time:
    """Time column first, then a time embedded in the action text, then midnight."""
    if time_idx is not None:
        found = parse_time_of_day(row[time_idx], formats=config.date_formats)
        if found is not None:
            return found
    found = find_time_in_text(row[action_idx])
    if found is not None:
        return found
    return time(0, 0)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _failed_result(table: Table, missing: list[str], warnings: list[str]) -> Table:
    labels = ", ".join(ROLE_LABELS[role] for role in missing)
    message = f"Required column(s) not found: {labels}. Reconciliation was not performed."
    warnings.append(message)
    rows = [row + [message] for row in normalize_rows(table)]
    return Table(
        headers=list(table.headers) + [ERROR_HEADER],
        rows=rows,
        source=table.source,
        warnings=warnings,
    )


def reconcile(
    table: Table,
    *,
    config: ReconcileConfig | None = None,
    progress: ProgressCallback | None = None,
) -> Table:
    config = config or DEFAULT_CONFIG
    warnings: list[str] = list(table.warnings)
    columns = resolve_columns(
        table.headers,
        (ROLE_SUBJECT_ID, ROLE_DATE, ROLE_ACTION),
        config=config,
        warnings=warnings,
    )
    missing = [role for role in REQUIRED_ROLES if columns[role] is None]
    if missing:
        return _failed_result(table, missing, warnings)

    subject_idx = columns[ROLE_SUBJECT_ID]
    date_idx = columns[ROLE_DATE]
    action_idx = columns[ROLE_ACTION]
    # Optional; absence is not worth a diagnostic.
    time_idx = resolve_columns(table.headers, (ROLE_TIME,), config=config)[ROLE_TIME]

    rows = normalize_rows(table, warnings)
    kinds = [classify_action(row[action_idx], config) for row in rows]
    keys: list[GroupKey | None] = [
        group_key(row, subject_idx, date_idx, config) if kind in (ACTION_ENTRY, ACTION_DELETION) else None
        for row, kind in zip(rows, kinds)
    ]

    entries: dict[GroupKey, list[EventRecord]] = defaultdict(list)
    for idx, (row, kind, key) in enumerate(zip(rows, kinds, keys)):
        if kind != ACTION_ENTRY or key is None:
            continue
        entries[key].append(EventRecord(
            row_index=idx,
            timestamp=datetime.combine(key[1], event_time(row, time_idx, action_idx, config)),
            action=kind,
            action_text=_text(row[action_idx]),
        ))
    for records in entries.values():
        records.sort(key=lambda record: (record.timestamp, record.row_index))

    consumed: set[int] = set()
    analyzed: set[int] = set()
    matches: dict[int, EventRecord] = {}
    total = len(rows)
    for idx, (kind, key) in enumerate(zip(kinds, keys)):
        if kind == ACTION_DELETION:
            analyzed.add(idx)
            if key is not None:
                match = next((r for r in entries.get(key, ()) if r.row_index not in consumed), None)
                if match is not None:
                    consumed.add(match.row_index)
                    matches[idx] = match
        if progress is not None and (idx + 1) % config.chunk_size == 0:
            progress(idx + 1, total)
    if progress is not None:
        progress(total, total)

    unmatched = len(analyzed) - len(matches)
    if unmatched:
        warnings.append(f"{unmatched} deletion record(s) had no matching entry on the same day")

    output_rows: list[list[Any]] = []
    for idx, row in enumerate(rows):
        new_row = list(row)
        match = matches.get(idx)
        if match is not None:
            new_row[action_idx] = f"{match.action_text} / {_text(row[action_idx])}"
            if time_idx is not None:
                new_row[time_idx] = format_hms(match.timestamp)
        new_row.append(idx in consumed)
        new_row.append(idx in analyzed)
        output_rows.append(new_row)

    return Table(
        headers=list(table.headers) + [CONSUMED_MARKER_HEADER, ANALYZED_MARKER_HEADER],
        rows=output_rows,
        source=table.source,
        warnings=warnings,
    )


def summarize_reconciliation(table: Table, config: ReconcileConfig | None = None) -> dict[str, Any]:
    """Counts derived from the marker columns of a reconciled table."""
    config = config or DEFAULT_CONFIG
    if ERROR_HEADER in table.headers:
        return {"status": "degraded", "rows": len(table.rows)}
    consumed_idx = table.headers.index(CONSUMED_MARKER_HEADER)
    analyzed_idx = table.headers.index(ANALYZED_MARKER_HEADER)
    action_idx = resolve_columns(table.headers, (ROLE_ACTION,), config=config)[ROLE_ACTION]

    entries = 0
    if action_idx is not None:
        entries = sum(1 for row in table.rows if classify_action(row[action_idx], config) == ACTION_ENTRY)
    deletions = sum(1 for row in table.rows if row[analyzed_idx] is True)
    consumed = sum(1 for row in table.rows if row[consumed_idx] is True)
    return {
        "status": "ok",
        "rows": len(table.rows),
        "entries": entries,
        "deletions": deletions,
        "matched_deletions": consumed,
        "unmatched_deletions": deletions - consumed,
        "consumed_entries": consumed,
    }
