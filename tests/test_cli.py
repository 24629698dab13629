from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "attendance_merge.cli"]
FIXED_STAMP = "20260301T010203Z"

ENTRIES_CSV = (
    "TC Kimlik No,Ad Soyad,Tarih,İşlem,Saat\n"
    "10,Ada,05.01.2024,Giriş,08:00\n"
    "9,Bo,05.01.2024,Giriş,09:00\n"
)
DELETIONS_CSV = (
    "Saat,İşlem,Tarih,TC Kimlik No,Ad Soyad\n"
    "17:00,Silme,05.01.2024,10,Ada\n"
)


def run_cli(*args: str, cwd: Path = ROOT, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["ATTENDANCE_MERGE_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_inputs(tmpdir: str) -> tuple[Path, Path]:
    entries = Path(tmpdir) / "entries.csv"
    deletions = Path(tmpdir) / "deletions.csv"
    entries.write_text(ENTRIES_CSV, encoding="utf-8")
    deletions.write_text(DELETIONS_CSV, encoding="utf-8")
    return entries, deletions


class AttendanceMergeCliTests(unittest.TestCase):
    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), "0.1.0")

    def test_run_merges_and_reconciles_with_json_summary(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            entries, deletions = write_inputs(tmpdir)
            out = Path(tmpdir) / "result.json"
            merged_out = Path(tmpdir) / "merged.csv"
            proc = run_cli("run", str(entries), str(deletions), "--out", str(out), "--merged-out", str(merged_out), "--json")

            self.assertEqual(proc.returncode, 0, proc.stderr)
            payload = json.loads(proc.stdout)
            self.assertEqual(payload["contract"], {"name": "attendance_merge.run", "version": "1.0.0"})
            self.assertIn("matched_deletions", payload["metrics_schema"])
            summary = payload["run_summary"]
            self.assertEqual(summary["status"], "ok")
            self.assertEqual(summary["metrics"]["matched_deletions"], 1)
            self.assertEqual(summary["metrics"]["unmatched_deletions"], 0)
            self.assertEqual(summary["metrics"]["tables"], 2)
            self.assertEqual(summary["output_file"], str(out))

            result = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(result["headers"][-2:], ["analysis:entry_consumed", "analysis:deletion_analyzed"])
            self.assertEqual([row[0] for row in result["rows"]], ["9", "10", "10"])
            self.assertEqual(result["rows"][2][3:], ["Giriş / Silme", "08:00:00", False, True])
            self.assertTrue(merged_out.exists())

    def test_merge_writes_default_output_under_working_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            entries, deletions = write_inputs(tmpdir)
            proc = run_cli("merge", str(entries), str(deletions), cwd=Path(tmpdir))

            self.assertEqual(proc.returncode, 0, proc.stderr)
            expected = Path(tmpdir) / "attendance-merge-output" / f"entries-{FIXED_STAMP}" / "merged.xlsx"
            self.assertTrue(expected.exists(), proc.stderr)
            self.assertIn("Merged 3 rows from 2 file(s)", proc.stderr)
            self.assertIn("different column layout", proc.stderr)

    def test_reconcile_without_date_column_returns_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "partial.csv"
            path.write_text("ID,Action\n1,deletion\n", encoding="utf-8")
            out = Path(tmpdir) / "out.json"
            proc = run_cli("reconcile", str(path), "--out", str(out))

            self.assertEqual(proc.returncode, 3, proc.stderr)
            self.assertIn("Reconciliation not performed", proc.stderr)
            result = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(result["headers"], ["ID", "Action", "analysis:error"])

    def test_fail_on_unmatched_returns_exit_4(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "orphan.csv"
            path.write_text("ID,Date,Action\n1,2024-01-05,deletion\n", encoding="utf-8")
            out = Path(tmpdir) / "out.csv"

            relaxed = run_cli("reconcile", str(path), "--out", str(out), "--quiet")
            strict = run_cli("reconcile", str(path), "--out", str(out), "--fail-on-unmatched")

            self.assertEqual(relaxed.returncode, 0, relaxed.stderr)
            self.assertNotIn("no matching entry", relaxed.stderr)
            self.assertEqual(strict.returncode, 4, strict.stderr)
            self.assertIn("no matching entry", strict.stderr)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("merge", "does/not/exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_unsupported_output_suffix_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            entries, _ = write_inputs(tmpdir)
            proc = run_cli("merge", str(entries), "--out", str(Path(tmpdir) / "out.txt"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unsupported output format '.txt'", proc.stderr)

    def test_unreadable_workbook_returns_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "corrupt.xlsx"
            path.write_bytes(b"not a zip archive")
            proc = run_cli("reconcile", str(path), "--out", str(Path(tmpdir) / "out.json"))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Could not read workbook", proc.stderr)

    def test_config_init_and_custom_vocabulary(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "attendance.json"
            proc = run_cli("config", "init", str(config_path))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            config = json.loads(config_path.read_text(encoding="utf-8"))
            self.assertIn("silme", config["deletion_synonyms"])

            again = run_cli("config", "init", str(config_path))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)

            config["deletion_synonyms"] = ["void"]
            config_path.write_text(json.dumps(config), encoding="utf-8")
            data = Path(tmpdir) / "custom.csv"
            data.write_text("ID,Date,Action,Time\n1,2024-01-05,entry,08:00\n1,2024-01-05,VOID,12:00\n", encoding="utf-8")
            out = Path(tmpdir) / "out.json"
            proc = run_cli("reconcile", str(data), "--out", str(out), "--config", str(config_path), "--json")

            self.assertEqual(proc.returncode, 0, proc.stderr)
            result = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(result["rows"][1][2], "entry / VOID")

    def test_invalid_config_returns_exit_1(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "bad.json"
            config_path.write_text(json.dumps({"entry_words": ["in"]}), encoding="utf-8")
            entries, _ = write_inputs(tmpdir)
            proc = run_cli("merge", str(entries), "--config", str(config_path), "--out", str(Path(tmpdir) / "m.json"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown configuration keys", proc.stderr)

    def test_usage_errors_return_exit_1(self):
        proc = run_cli("reconcile")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
