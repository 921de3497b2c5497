"""Migrate a MySQL dump into document collections.

Example::

    python -m dumpmigrate.tools.migrate dump.sql --all --dry-run
    python -m dumpmigrate.tools.migrate dump.sql -c users -c plans --limit 100
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dumpmigrate import DumpReadError, MigrationError
from dumpmigrate.config import MigrationConfig, apply_overrides, load_config
from dumpmigrate.idmap import IdentifierMapper
from dumpmigrate.log import configure_logging, make_progress
from dumpmigrate.migrate import (
    MIGRATION_ORDER,
    MigrationReport,
    report_to_dict,
    required_tables,
    run_migration,
    select_collections,
)
from dumpmigrate.parser import parse_dump_file
from dumpmigrate.sink import JsonlSink

LOGGER = logging.getLogger(__name__)


def migrate_dump(
    config: MigrationConfig,
    *,
    collections: Sequence[str] | None = None,
    dry_run: bool = False,
    limit: int | None = None,
    show_progress: bool = True,
) -> MigrationReport:
    """Parse ``config.dump_path`` and run the selected collection migrations."""
    if not config.dump_path:
        raise MigrationError("No dump path given")
    start_time = time.time()
    selected = select_collections(collections)
    ids = IdentifierMapper(config.namespace, aliases=config.listing_aliases)
    if config.id_map_path:
        ids.load(config.id_map_path)

    console = Console() if show_progress else None
    progress = make_progress(console) if show_progress else None
    if progress is not None:
        progress.start()
    try:
        tables, _ = parse_dump_file(
            config.dump_path,
            required_tables(selected),
            diagnostics_path=config.diagnostics_path,
            detect_booleans=config.detect_booleans,
            progress=progress,
        )
        sink = None if dry_run else JsonlSink(config.output_dir)
        try:
            report = run_migration(
                tables,
                ids,
                sink,
                collections=selected,
                dry_run=dry_run,
                limit=limit,
                config=config,
                progress=progress,
            )
        finally:
            if sink is not None:
                sink.close()
    finally:
        if progress is not None:
            progress.stop()

    if config.id_map_path and not dry_run:
        ids.persist(config.id_map_path)

    if console is not None:
        _print_summary(console, report, config, time.time() - start_time)
    return report


def _print_summary(
    console: Console, report: MigrationReport, config: MigrationConfig, elapsed: float
) -> None:
    summary = Table.grid(padding=(0, 2))
    summary.add_column(justify="right", style="bold")
    summary.add_column()
    summary.add_row("From", str(config.dump_path))
    summary.add_row("To", "(dry run)" if report.dry_run else config.output_dir)
    summary.add_row("Documents", str(report.total_documents))
    summary.add_row("Errors", str(report.total_errors))
    summary.add_row("Mappings", str(report.mappings))
    summary.add_row("Elapsed", f"{elapsed:.1f}s")
    style = "green" if report.total_errors == 0 else "yellow"
    console.print(Panel(summary, title="SQL dump → documents", border_style=style))

    per_collection = Table(title="Collections", show_lines=False)
    per_collection.add_column("Collection", style="cyan")
    per_collection.add_column("Source rows", justify="right")
    per_collection.add_column("Documents", justify="right")
    per_collection.add_column("Written", justify="right")
    per_collection.add_column("Errors", justify="right", style="yellow")
    for name, c in report.collections.items():
        per_collection.add_row(
            name, str(c.source_rows), str(c.documents), str(c.written), str(c.error_count)
        )
    console.print(per_collection)

    if report.failed_collections:
        failed = Table(title="Failed Collections", show_lines=False)
        failed.add_column("Collection", style="cyan")
        failed.add_column("Error", style="red")
        for name in report.failed_collections:
            failed.add_row(name, str(report.collections[name].failure))
        console.print(failed)


def main(argv: Sequence[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Migrate a MySQL dump into document collections")
    p.add_argument("dump_path", nargs="?", default=None, help="Path to the MySQL dump file")
    p.add_argument(
        "--collection",
        "-c",
        action="append",
        choices=MIGRATION_ORDER,
        help="Collection to migrate (repeatable)",
    )
    p.add_argument("--all", "-a", action="store_true", help="Migrate every collection")
    p.add_argument(
        "--dry-run", "-d", action="store_true", help="Transform without writing documents"
    )
    p.add_argument("--limit", "-l", type=int, default=None, help="Rows per source table")
    p.add_argument("--output-dir", default=None, help="Directory for <collection>.jsonl")
    p.add_argument("--id-map", default=None, help="Identifier mapping file")
    p.add_argument("--diagnostics", default=None, help="Parse diagnostics file")
    p.add_argument("--config", default=None, help="JSON configuration file")
    p.add_argument("--log-file", default=None, help="Append log records to this file")
    p.add_argument("--report-json", default=None, help="Write a JSON run report ('-' for stdout)")
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

    if not args.all and not args.collection:
        p.error("choose collections with --collection or pass --all")

    try:
        config = load_config(args.config)
        overrides = {
            key: value
            for key, value in (
                ("dump_path", args.dump_path),
                ("output_dir", args.output_dir),
                ("id_map_path", args.id_map),
                ("diagnostics_path", args.diagnostics),
                ("log_file", args.log_file),
            )
            if value is not None
        }
        config = apply_overrides(config, overrides)
    except MigrationError as exc:
        configure_logging(verbose=bool(args.verbose))
        LOGGER.error("%s", exc)
        return 2

    configure_logging(log_file=config.log_file, verbose=bool(args.verbose))
    try:
        report = migrate_dump(
            config,
            collections=None if args.all else args.collection,
            dry_run=bool(args.dry_run),
            limit=args.limit,
            show_progress=not bool(args.no_progress),
        )
    except DumpReadError as exc:
        LOGGER.error("Fatal: %s", exc)
        return 1
    except MigrationError as exc:
        LOGGER.error("%s", exc)
        return 2

    if args.report_json:
        payload = json.dumps(report_to_dict(report), indent=2, sort_keys=True)
        if args.report_json == "-":
            sys.stdout.write(payload + "\n")
        else:
            with open(args.report_json, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
