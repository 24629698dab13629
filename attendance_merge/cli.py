from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from attendance_merge import __version__ as TOOL_VERSION
from attendance_merge.config import DEFAULT_CONFIG, ReconcileConfig, config_to_dict, load_config
from attendance_merge.contracts import build_report, build_run_summary
from attendance_merge.loader import ALL_FORMATS, load_tables
from attendance_merge.merge import merge_tables
from attendance_merge.reconcile import reconcile, summarize_reconciliation
from attendance_merge.writer import OUTPUT_FORMATS, write_table

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DEGRADED = 3
EXIT_UNMATCHED = 4

OUTPUT_DIR_NAME = "attendance-merge-output"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class AttendanceMergeArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("ATTENDANCE_MERGE_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_path(input_path: Path, filename: str) -> Path:
    return Path.cwd() / OUTPUT_DIR_NAME / f"{input_path.stem}-{timestamp_token()}" / filename


def resolve_output_path(value: str | None, input_path: Path, filename: str) -> Path:
    path = Path(value) if value else default_output_path(input_path, filename)
    if path.suffix.lower() not in OUTPUT_FORMATS:
        raise CliError(
            f"Unsupported output format '{path.suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(OUTPUT_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    return path


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (ImportError, UnicodeDecodeError, ValueError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def check_inputs(values: list[str]) -> list[Path]:
    paths = [Path(value) for value in values]
    for path in paths:
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
        if path.suffix.lower() not in ALL_FORMATS:
            raise CliError(
                f"Unsupported file type '{path.suffix or '[missing extension]'}'. "
                f"Supported: {', '.join(sorted(ALL_FORMATS))}",
                EXIT_COMMAND_ERROR,
            )
    return paths


def read_config(value: str | None) -> ReconcileConfig:
    if not value:
        return DEFAULT_CONFIG
    try:
        return load_config(value)
    except (FileNotFoundError, ValueError, TypeError) as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def emit_warnings(warnings: list[str], *, quiet: bool) -> None:
    for warning in warnings:
        emit_human(f"warning: {warning}", quiet=quiet)


def finish(payload: dict[str, Any], args: argparse.Namespace, lines: list[str]) -> None:
    if args.json:
        print(json_dumps(payload))
        return
    emit_warnings(payload["run_summary"]["warnings"], quiet=args.quiet)
    for line in lines:
        emit_human(line, quiet=args.quiet)


def reconcile_exit_code(metrics: dict[str, Any], args: argparse.Namespace) -> int:
    if metrics.get("status") == "degraded":
        return EXIT_DEGRADED
    if getattr(args, "fail_on_unmatched", False) and metrics.get("unmatched_deletions", 0):
        return EXIT_UNMATCHED
    return EXIT_SUCCESS


def run_merge(args: argparse.Namespace) -> int:
    try:
        config = read_config(args.config)
        input_paths = check_inputs(args.inputs)
        output_path = resolve_output_path(args.out, input_paths[0], "merged.xlsx")
        merged = merge_tables(load_tables(input_paths), config=config)
        write_table(merged, output_path)
        metrics = {"tables": len(input_paths), "columns": merged.width, "rows": len(merged.rows)}
        summary = build_run_summary(
            command="merge",
            input_paths=input_paths,
            output_path=output_path,
            metrics=metrics,
            warnings=merged.warnings,
        )
        payload = build_report("attendance_merge.merge", tool_version=TOOL_VERSION, run_summary=summary)
        finish(payload, args, [f"Merged {len(merged.rows)} rows from {len(input_paths)} file(s): {output_path}"])
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_reconcile(args: argparse.Namespace) -> int:
    try:
        config = read_config(args.config)
        input_paths = check_inputs([args.input])
        output_path = resolve_output_path(args.out, input_paths[0], "reconciled.xlsx")
        source = load_tables(input_paths)[0]
        result = reconcile(source, config=config)
        write_table(result, output_path)
        metrics = summarize_reconciliation(result, config)
        summary = build_run_summary(
            command="reconcile",
            input_paths=input_paths,
            status=metrics["status"],
            output_path=output_path,
            metrics=metrics,
            warnings=result.warnings,
        )
        payload = build_report("attendance_merge.reconcile", tool_version=TOOL_VERSION, run_summary=summary)
        finish(payload, args, [render_reconcile_text(metrics), f"Reconciled table: {output_path}"])
        return reconcile_exit_code(metrics, args)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_pipeline(args: argparse.Namespace) -> int:
    try:
        config = read_config(args.config)
        input_paths = check_inputs(args.inputs)
        output_path = resolve_output_path(args.out, input_paths[0], "reconciled.xlsx")
        merged_path = resolve_output_path(args.merged_out, input_paths[0], "merged.xlsx") if args.merged_out else None
        merged = merge_tables(load_tables(input_paths), config=config)
        if merged_path is not None:
            write_table(merged, merged_path)
        result = reconcile(merged, config=config)
        write_table(result, output_path)
        metrics = summarize_reconciliation(result, config)
        metrics["tables"] = len(input_paths)
        summary = build_run_summary(
            command="run",
            input_paths=input_paths,
            status=metrics["status"],
            output_path=output_path,
            metrics=metrics,
            warnings=result.warnings,
        )
        payload = build_report("attendance_merge.run", tool_version=TOOL_VERSION, run_summary=summary)
        lines = [render_reconcile_text(metrics)]
        if merged_path is not None:
            lines.append(f"Merged table: {merged_path}")
        lines.append(f"Reconciled table: {output_path}")
        finish(payload, args, lines)
        return reconcile_exit_code(metrics, args)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def render_reconcile_text(metrics: dict[str, Any]) -> str:
    if metrics.get("status") == "degraded":
        return f"Reconciliation not performed (required columns missing); {metrics['rows']} rows passed through"
    return "\n".join(
        [
            "attendance-merge reconcile",
            f"Rows: {metrics['rows']}",
            f"Entries: {metrics['entries']}",
            f"Deletions: {metrics['deletions']}",
            f"Matched deletions: {metrics['matched_deletions']}",
            f"Unmatched deletions: {metrics['unmatched_deletions']}",
        ]
    )


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    if config_path.suffix.lower() != ".json":
        eprint("Config path must end in .json")
        return EXIT_COMMAND_ERROR
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json_dumps(config_to_dict(DEFAULT_CONFIG)) + "\n", encoding="utf-8")
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON config with synonym lists and date formats")
    parser.add_argument("--json", action="store_true", help="Write the machine JSON run summary to stdout")
    parser.add_argument("--quiet", action="store_true", help="Suppress human-readable stderr output")


def build_parser() -> argparse.ArgumentParser:
    parser = AttendanceMergeArgumentParser(
        prog="attendance-merge",
        description="Merge attendance log exports and reconcile deletion records against entries.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge several exports into one table sorted by subject id")
    merge.add_argument("inputs", nargs="+", help="Input files (.csv .tsv .txt .xlsx .xlsm .xls .ods)")
    merge.add_argument("--out", help="Output path (.xlsx, .csv or .json)")
    _add_common(merge)

    rec = subparsers.add_parser("reconcile", help="Match deletion records of a merged table to entries")
    rec.add_argument("input", help="Merged table file")
    rec.add_argument("--out", help="Output path (.xlsx, .csv or .json)")
    rec.add_argument("--fail-on-unmatched", action="store_true", help="Return exit code 4 when a deletion has no matching entry")
    _add_common(rec)

    run = subparsers.add_parser("run", help="Merge exports, then reconcile the merged table")
    run.add_argument("inputs", nargs="+", help="Input files")
    run.add_argument("--out", help="Reconciled output path (.xlsx, .csv or .json)")
    run.add_argument("--merged-out", dest="merged_out", help="Also write the merged table here")
    run.add_argument("--fail-on-unmatched", action="store_true", help="Return exit code 4 when a deletion has no matching entry")
    _add_common(run)

    config = subparsers.add_parser("config", help="Configuration helpers")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    init = config_sub.add_parser("init", help="Write the default configuration JSON")
    init.add_argument("path", help="Destination .json path")

    subparsers.add_parser("version", help="Print the tool version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "merge":
            return run_merge(args)
        if args.command == "reconcile":
            return run_reconcile(args)
        if args.command == "run":
            return run_pipeline(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
