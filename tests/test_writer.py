import json
import tempfile
import unittest
from datetime import datetime, time
from pathlib import Path

from openpyxl import load_workbook

from attendance_merge.reconcile import ANALYZED_MARKER_HEADER, CONSUMED_MARKER_HEADER, reconcile
from attendance_merge.table import Table
from attendance_merge.writer import stringify, write_table


def reconciled_table() -> Table:
    return reconcile(Table(
        ["ID", "Date", "Action", "Time"],
        [
            ["1", datetime(2024, 1, 5), "entry", time(8, 0)],
            ["1", datetime(2024, 1, 5), "deletion", time(17, 0)],
        ],
    ))


class StringifyTests(unittest.TestCase):
    def test_cell_rendering(self):
        self.assertEqual(stringify(True), "TRUE")
        self.assertEqual(stringify(False), "FALSE")
        self.assertEqual(stringify(None), "")
        self.assertEqual(stringify(datetime(2024, 1, 5, 8, 0)), "2024-01-05 08:00:00")
        self.assertEqual(stringify(time(8, 0)), "08:00:00")
        self.assertEqual(stringify(12), "12")


class WriteTableTests(unittest.TestCase):
    def test_xlsx_output_has_styled_header_and_boolean_markers(self):
        table = reconciled_table()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_table(table, Path(tmpdir) / "nested" / "out.xlsx")
            wb = load_workbook(path)
            ws = wb.active

            self.assertEqual(ws.title, "Data")
            header = [cell.value for cell in ws[1]]
            self.assertEqual(header, ["ID", "Date", "Action", "Time", CONSUMED_MARKER_HEADER, ANALYZED_MARKER_HEADER])
            self.assertEqual(ws.freeze_panes, "A2")
            self.assertTrue(ws["A1"].font.bold)
            self.assertTrue(ws["A1"].fill.fgColor.rgb.endswith("1565C0"))
            self.assertTrue(ws["E1"].fill.fgColor.rgb.endswith("E53935"))

            self.assertIs(ws["E2"].value, True)
            self.assertIs(ws["F2"].value, False)
            self.assertEqual(ws["C3"].value, "entry / deletion")
            self.assertEqual(ws["D3"].value, "08:00:00")
            self.assertIs(ws["F3"].value, True)
            self.assertEqual(ws.max_row, 3)

    def test_csv_output_uses_text_markers_and_bom(self):
        table = reconciled_table()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_table(table, Path(tmpdir) / "out.csv")
            raw = path.read_bytes()
            lines = raw.decode("utf-8-sig").splitlines()

        self.assertTrue(raw.startswith(b"\xef\xbb\xbf"))
        self.assertEqual(lines[0], f"ID,Date,Action,Time,{CONSUMED_MARKER_HEADER},{ANALYZED_MARKER_HEADER}")
        self.assertEqual(lines[1], "1,2024-01-05 00:00:00,entry,08:00:00,TRUE,FALSE")
        self.assertEqual(lines[2], "1,2024-01-05 00:00:00,entry / deletion,08:00:00,FALSE,TRUE")

    def test_json_output_keeps_booleans(self):
        table = reconciled_table()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_table(table, Path(tmpdir) / "out.json")
            payload = json.loads(path.read_text(encoding="utf-8"))

        self.assertEqual(payload["headers"][-2:], [CONSUMED_MARKER_HEADER, ANALYZED_MARKER_HEADER])
        self.assertEqual(payload["rows"][1], ["1", "2024-01-05 00:00:00", "entry / deletion", "08:00:00", False, True])

    def test_unsupported_suffix(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaisesRegex(ValueError, "Unsupported output format '.ods'"):
                write_table(Table(["ID"], []), Path(tmpdir) / "out.ods")

    def test_empty_table_writes_an_empty_sheet(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_table(Table([], []), Path(tmpdir) / "empty.xlsx")
            self.assertTrue(path.exists())


if __name__ == "__main__":
    unittest.main()
