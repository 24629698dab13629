"""Merge attendance/access log exports and reconcile deletion records against entries."""

from __future__ import annotations

__version__ = "0.1.0"

from attendance_merge.columns import resolve_column, resolve_columns
from attendance_merge.config import DEFAULT_CONFIG, ReconcileConfig, load_config
from attendance_merge.dates import (
    format_dmy,
    format_dmy_hms,
    format_hms,
    format_iso_date,
    parse_datetime,
    parse_time_of_day,
)
from attendance_merge.merge import merge_tables
from attendance_merge.reconcile import (
    ANALYZED_MARKER_HEADER,
    CONSUMED_MARKER_HEADER,
    ERROR_HEADER,
    reconcile,
)
from attendance_merge.table import Table

__all__ = [
    "ANALYZED_MARKER_HEADER",
    "CONSUMED_MARKER_HEADER",
    "DEFAULT_CONFIG",
    "ERROR_HEADER",
    "ReconcileConfig",
    "Table",
    "format_dmy",
    "format_dmy_hms",
    "format_hms",
    "format_iso_date",
    "load_config",
    "merge_tables",
    "parse_datetime",
    "parse_time_of_day",
    "reconcile",
    "resolve_column",
    "resolve_columns",
]
