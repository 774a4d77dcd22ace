from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cte_reconciler import __version__ as TOOL_VERSION
from cte_reconciler.column_detector import infer_roles
from cte_reconciler.config import config_to_dict, load_config, load_overrides
from cte_reconciler.contracts import (
    build_contract,
    build_run_summary,
    result_to_dict,
)
from cte_reconciler.ingest import ExternalSource, ingest_external_report, ingest_internal
from cte_reconciler.loader import DecodeError, decode_path
from cte_reconciler.matching import reconcile
from cte_reconciler.models import (
    DEFAULT_CONFIG,
    ExternalRecord,
    InternalRecord,
    InternalSource,
    PaymentStatus,
    SchemaFamily,
)
from cte_reconciler.normalization import normalize_identifier
from cte_reconciler.summary import build_summary


EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_NEEDS_ATTENTION = 3
EXIT_PARTIAL = 6

REPORT_FILE_NAME = "reconciliation.json"
DEFAULT_CONFIG_PATH = "cte-reconciler.json"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class CteReconcilerArgumentParser(argparse.ArgumentParser):
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
    override = os.environ.get("CTE_RECONCILER_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir() -> Path:
    return Path.cwd() / "cte-reconciler-output" / f"reconcile-{timestamp_token()}"


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def safe_output_path(explicit: Path | None, default_path: Path) -> Path:
    path = explicit or default_path
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (DecodeError, ValueError, ImportError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def split_input_entry(entry: str, option: str) -> tuple[str, Path]:
    """Split ``KIND:PATH`` into its parts; the kind never contains a colon."""
    kind, sep, path = entry.partition(":")
    if not sep or not kind or not path:
        raise CliError(f"{option} expects KIND:PATH, got '{entry}'", EXIT_COMMAND_ERROR)
    return kind.strip(), Path(path)


def parse_internal_entries(entries: list[str]) -> list[tuple[InternalSource, Path]]:
    parsed = []
    for entry in entries:
        kind, path = split_input_entry(entry, "--internal")
        try:
            source = InternalSource.coerce(kind)
        except ValueError:
            choices = ", ".join(member.value for member in InternalSource)
            raise CliError(f"Unknown internal kind '{kind}'. Use one of: {choices}", EXIT_COMMAND_ERROR) from None
        parsed.append((source, path))
    return parsed


def parse_external_entries(entries: list[str]) -> list[tuple[PaymentStatus, Path]]:
    parsed = []
    for entry in entries:
        kind, path = split_input_entry(entry, "--external")
        try:
            status = PaymentStatus.coerce(kind)
        except ValueError:
            choices = ", ".join(member.value for member in PaymentStatus)
            raise CliError(f"Unknown external kind '{kind}'. Use one of: {choices}", EXIT_COMMAND_ERROR) from None
        parsed.append((status, path))
    return parsed


def require_existing(paths: list[Path]) -> None:
    for path in paths:
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)


def resolve_confirmed_links(
    links: dict[str, str],
    internal: list[InternalRecord],
    external: list[ExternalRecord],
) -> dict[str, str]:
    """
    Turn a ``{CT-e number: document number}`` file into the record-id map
    used by ``reconcile``.
    """
    if not links:
        return {}
    wanted = {normalize_identifier(key).normalized: value.strip() for key, value in links.items()}
    documents: dict[str, str] = {}
    for ext in external:
        documents.setdefault(ext.document_number, ext.id)
    confirmed = {}
    for record in internal:
        document = wanted.get(record.identifier_normalized)
        if record.identifier_normalized and document in documents:
            confirmed[record.id] = documents[document]
    return confirmed


def format_money(value: float) -> str:
    return f"R$ {value:,.2f}"


def render_reconcile_text(summary: dict[str, Any], failures: list[dict[str, str]]) -> str:
    lines = [
        f"Internal records: {summary['total_internal']}",
        f"  matched:        {summary['total_matched']}",
        f"  discrepancies:  {summary['total_discrepancies']}",
        f"  manual review:  {summary['total_manual_review']}",
        f"  unmatched:      {summary['total_unmatched']}",
        f"Value matched:    {format_money(summary['total_value_matched'])}",
        f"Value pending:    {format_money(summary['total_value_pending'])}",
    ]
    financial = summary["financial"]
    lines.append(
        f"Paid {format_money(financial['paid'])} ({financial['paid_count']}), "
        f"scheduled {format_money(financial['scheduled'])} ({financial['scheduled_count']}), "
        f"advanced {format_money(financial['advanced'])} ({financial['advanced_count']})"
    )
    for failure in failures:
        lines.append(f"Skipped {failure['file_name']}: {failure['message']}")
    return "\n".join(lines)


def render_inspect_text(payload: dict[str, Any]) -> str:
    header = payload["header_index"]
    lines = [
        f"File: {payload['file']}",
        f"Rows decoded: {payload['row_count']}",
        f"Header row: {header if header is not None else 'not found'}",
        "Roles:",
    ]
    for role, index in payload["roles"].items():
        lines.append(f"  {role}: {index if index is not None else '-'}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = CteReconcilerArgumentParser(prog="cte-reconciler")
    subparsers = parser.add_subparsers(dest="command", required=True, parser_class=CteReconcilerArgumentParser)

    run = subparsers.add_parser("reconcile", help="Reconcile operational sheets against financial exports.")
    run.add_argument("--internal", action="append", required=True, metavar="KIND:PATH", help="Operational sheet (ROTA or PUXADA); repeatable")
    run.add_argument("--external", action="append", default=[], metavar="KIND:PATH", help="Financial export (PAGO, A PAGAR or ADIANTADO); repeatable")
    run.add_argument("--config", help="Config path (.json)")
    run.add_argument("--overrides", help="Confirmed links path (.json object of CT-e number to external document number)")
    run.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    run.add_argument("--output", help="Explicit report output path")
    run.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    run.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    run.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    inspect = subparsers.add_parser("inspect", help="Show the detected header row and column roles of a file.")
    inspect.add_argument("input", help="Input file path")
    inspect.add_argument("--family", choices=[f.value for f in SchemaFamily], required=True, help="Which kind of file this is")
    inspect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    inspect.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True, parser_class=CteReconcilerArgumentParser)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_PATH, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def exit_code_for_reconcile(summary: dict[str, Any], failures: list[dict[str, str]]) -> int:
    if failures:
        return EXIT_PARTIAL
    if summary["total_matched"] < summary["total_internal"]:
        return EXIT_NEEDS_ATTENTION
    return EXIT_SUCCESS


def run_reconcile(args: argparse.Namespace) -> int:
    internal_inputs = parse_internal_entries(args.internal)
    external_inputs = parse_external_entries(args.external)
    require_existing([path for _, path in internal_inputs] + [path for _, path in external_inputs])

    try:
        config = load_config(args.config)
        overrides = load_overrides(args.overrides)
    except (FileNotFoundError, ValueError) as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc

    out_dir = Path(args.out_dir) if args.out_dir else default_output_dir()
    report_path = safe_output_path(Path(args.output) if args.output else None, out_dir / REPORT_FILE_NAME)

    try:
        internal = []
        for source, path in internal_inputs:
            records = ingest_internal(path.read_bytes(), path.name, config, source)
            emit_human(f"Read {len(records)} records from {path.name} ({source.value})", quiet=args.quiet)
            internal.extend(records)

        report = ingest_external_report(
            ExternalSource(path.read_bytes(), path.name, status) for status, path in external_inputs
        )
        confirmed = resolve_confirmed_links(overrides, internal, report.records)
        results = reconcile(internal, report.records, confirmed)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)

    summary = build_summary(results)
    failures = [{"file_name": f.file_name, "message": f.message} for f in report.failures]
    input_files = [str(path) for _, path in internal_inputs + external_inputs]
    payload = {
        "contract": build_contract("cte_reconciler.reconcile"),
        "run_summary": build_run_summary(
            tool="cte-reconciler",
            command="reconcile",
            input_files=input_files,
            status="partial" if failures else "ok",
            output_path=str(report_path),
            metrics={
                "internal_records": len(internal),
                "external_records": len(report.records),
                "needs_attention": summary["total_internal"] - summary["total_matched"],
            },
            warnings=[f"{f['file_name']}: {f['message']}" for f in failures],
        ),
        "config": config_to_dict(config),
        "summary": summary,
        "failures": failures,
        "rows": [result_to_dict(result) for result in results],
    }
    write_json(report_path, payload)

    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_reconcile_text(summary, failures), quiet=args.quiet)
    emit_human(f"Report written: {report_path}", quiet=args.quiet)
    return exit_code_for_reconcile(summary, failures)


def run_inspect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        rows = decode_path(input_path)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)

    header_index, roles = infer_roles(rows, args.family)
    payload = {
        "contract": build_contract("cte_reconciler.inspect"),
        "file": input_path.name,
        "family": args.family,
        "row_count": len(rows),
        "header_index": header_index,
        "roles": roles.as_dict(),
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_inspect_text(payload))
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    if config_path.suffix.lower() != ".json":
        eprint("Config path must end in .json")
        return EXIT_COMMAND_ERROR
    write_json(config_path, config_to_dict(DEFAULT_CONFIG))
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "reconcile":
            return run_reconcile(args)
        if args.command == "inspect":
            return run_inspect(args)
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
