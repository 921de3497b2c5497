"""Parse a MySQL dump and write each table's rows to ``<table>.json``."""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dumpmigrate import DumpReadError, MigrationError
from dumpmigrate.config import load_config
from dumpmigrate.log import configure_logging, make_progress
from dumpmigrate.parser import DumpDiagnostics, ParsedDump, parse_dump_file, write_report_json

LOGGER = logging.getLogger(__name__)


def write_tables(tables: ParsedDump, output_dir: str) -> dict[str, str]:
    """Write one JSON array per table and return the written paths."""
    os.makedirs(output_dir, exist_ok=True)
    written: dict[str, str] = {}
    for table, rows in tables.items():
        path = os.path.join(output_dir, f"{table}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(rows, f, ensure_ascii=False, indent=2, default=str)
            f.write("\n")
        written[table] = path
    return written


def export_dump(
    *,
    dump_path: str,
    output_dir: str,
    tables: Sequence[str],
    diagnostics_path: str | None = None,
    detect_booleans: bool = False,
    show_progress: bool = True,
) -> DumpDiagnostics:
    start_time = time.time()
    console = Console() if show_progress else None
    progress = make_progress(console) if show_progress else None

    if progress is not None:
        progress.start()
    try:
        parsed, diagnostics = parse_dump_file(
            dump_path,
            tables,
            diagnostics_path=diagnostics_path,
            detect_booleans=detect_booleans,
            progress=progress,
        )
    finally:
        if progress is not None:
            progress.stop()

    write_tables(parsed, output_dir)

    if console is not None:
        summary = Table.grid(padding=(0, 2))
        summary.add_column(justify="right", style="bold")
        summary.add_column()
        summary.add_row("From", dump_path)
        summary.add_row("To", output_dir)
        summary.add_row("Tables", str(len(parsed)))
        summary.add_row("Rows", str(diagnostics.rows_extracted))
        summary.add_row("Elapsed", f"{time.time() - start_time:.1f}s")
        console.print(Panel(summary, title="SQL dump → JSON", border_style="green"))

        if diagnostics.failed_tables:
            failed = Table(title="Tables Without Rows", show_lines=False)
            failed.add_column("Table", style="cyan")
            failed.add_column("Reason", style="yellow")
            for name in diagnostics.failed_tables:
                diag = diagnostics.tables[name]
                reason = "no CREATE TABLE" if not diag.schema_found else "no INSERT rows"
                failed.add_row(name, reason)
            console.print(failed)
    return diagnostics


def main(argv: Sequence[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        description="Extract table rows from a MySQL dump into JSON files"
    )
    p.add_argument("dump_path", help="Path to the MySQL dump file (.sql or .sql.gz)")
    p.add_argument(
        "--output-dir", default="extracted-data", help="Directory for <table>.json files"
    )
    p.add_argument(
        "--tables",
        nargs="+",
        default=None,
        help="Tables to extract (defaults to the configured table list)",
    )
    p.add_argument("--config", default=None, help="JSON configuration file")
    p.add_argument(
        "--diagnostics",
        default=None,
        help="Append the parse diagnostics report to this file",
    )
    p.add_argument(
        "--report-json",
        default=None,
        help="Write a JSON parse report to this path (use '-' for stdout)",
    )
    p.add_argument(
        "--detect-booleans",
        action="store_true",
        help="Decode bare TRUE/FALSE tokens as booleans",
    )
    p.add_argument(
        "--no-progress", action="store_true", help="Disable rich progress output"
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output for debugging",
    )
    args = p.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))
    try:
        config = load_config(args.config)
        diagnostics = export_dump(
            dump_path=args.dump_path,
            output_dir=args.output_dir,
            tables=args.tables or config.tables,
            diagnostics_path=args.diagnostics or config.diagnostics_path,
            detect_booleans=bool(args.detect_booleans) or config.detect_booleans,
            show_progress=not bool(args.no_progress),
        )
    except DumpReadError as exc:
        LOGGER.error("Fatal: %s", exc)
        return 1
    except MigrationError as exc:
        LOGGER.error("%s", exc)
        return 2

    if args.report_json:
        write_report_json(diagnostics, str(args.report_json))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
