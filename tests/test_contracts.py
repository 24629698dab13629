from __future__ import annotations

import unittest
from pathlib import Path

from attendance_merge.contracts import build_report, build_run_summary
from attendance_merge.reconcile import reconcile, summarize_reconciliation
from attendance_merge.table import Table


def reconcile_summary(table: Table) -> dict:
    result = reconcile(table)
    metrics = summarize_reconciliation(result)
    return build_run_summary(
        command="reconcile",
        input_paths=[Path("merged.xlsx")],
        status=metrics["status"],
        metrics=metrics,
        warnings=result.warnings,
    )


class ContractTests(unittest.TestCase):
    def test_reconcile_report_carries_contract_and_metrics_schema(self):
        summary = reconcile_summary(Table(
            ["ID", "Date", "Action"],
            [["1", "2024-01-05", "entry"], ["1", "2024-01-05", "deletion"]],
        ))

        report = build_report("attendance_merge.reconcile", tool_version="0.1.0", run_summary=summary)

        self.assertEqual(report["contract"], {"name": "attendance_merge.reconcile", "version": "1.0.0"})
        self.assertEqual(report["schema_version"], report["contract"]["version"])
        self.assertEqual(report["run_summary"]["tool"], "attendance-merge")
        self.assertEqual(report["run_summary"]["input_files"], ["merged.xlsx"])
        self.assertIn("matched_deletions", report["metrics_schema"])
        self.assertEqual(report["run_summary"]["metrics"]["matched_deletions"], 1)
        self.assertRegex(report["run_summary"]["generated_at"], r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

    def test_degraded_reconcile_only_promises_status_and_rows(self):
        summary = reconcile_summary(Table(["ID", "Action"], [["1", "deletion"]]))

        report = build_report("attendance_merge.reconcile", tool_version="0.1.0", run_summary=summary)

        self.assertEqual(report["metrics_schema"], ["status", "rows"])
        self.assertEqual(report["run_summary"]["status"], "degraded")
        self.assertEqual(report["run_summary"]["warnings_count"], len(report["run_summary"]["warnings"]))

    def test_missing_metrics_are_rejected(self):
        summary = build_run_summary(command="merge", input_paths=[], metrics={"rows": 3})
        with self.assertRaisesRegex(ValueError, "tables, columns"):
            build_report("attendance_merge.merge", tool_version="0.1.0", run_summary=summary)

    def test_unknown_contract_is_rejected(self):
        summary = build_run_summary(command="merge", input_paths=[])
        with self.assertRaises(KeyError):
            build_report("attendance_merge.export", tool_version="0.1.0", run_summary=summary)


if __name__ == "__main__":
    unittest.main()
