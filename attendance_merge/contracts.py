"""Versioned JSON run summaries printed by ``attendance-merge --json``."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

CONTRACT_VERSIONS = {
    "attendance_merge.merge": "1.0.0",
    "attendance_merge.reconcile": "1.0.0",
    "attendance_merge.run": "1.0.0",
}

RECONCILE_METRICS = (
    "status",
    "rows",
    "entries",
    "deletions",
    "matched_deletions",
    "unmatched_deletions",
    "consumed_entries",
)
DEGRADED_METRICS = ("status", "rows")

# Keys every run summary of a contract must carry in ``metrics``.
METRICS_SCHEMA = {
    "attendance_merge.merge": ("tables", "columns", "rows"),
    "attendance_merge.reconcile": RECONCILE_METRICS,
    "attendance_merge.run": RECONCILE_METRICS + ("tables",),
}


def build_run_summary(
    *,
    command: str,
    input_paths: Sequence[Path],
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "attendance-merge",
        "command": command,
        "status": status,
        "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "input_files": [str(path) for path in input_paths],
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def build_report(name: str, *, tool_version: str, run_summary: dict[str, Any]) -> dict[str, Any]:
    """
    Wrap a run summary in its versioned contract.

    A degraded reconciliation only promises ``status`` and ``rows``; any other
    summary missing a metric of its contract is rejected with ValueError.
    """
    if name not in CONTRACT_VERSIONS:
        raise KeyError(f"Unknown contract: {name!r}. Known: {sorted(CONTRACT_VERSIONS)}")
    version = CONTRACT_VERSIONS[name]
    metrics = run_summary.get("metrics", {})
    expected = DEGRADED_METRICS if metrics.get("status") == "degraded" else METRICS_SCHEMA[name]
    missing = [key for key in expected if key not in metrics]
    if missing:
        raise ValueError(f"{name} run summary is missing metrics: {', '.join(missing)}")
    return {
        "contract": {"name": name, "version": version},
        "schema_version": version,
        "tool_version": tool_version,
        "metrics_schema": list(expected),
        "run_summary": run_summary,
    }
