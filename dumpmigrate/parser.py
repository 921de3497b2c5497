"""Parse a MySQL dump into per-table row lists.

Only the tables asked for are extracted. Every table gets a schema from its
CREATE TABLE statement, then its INSERT statements are read with the first
dialect that yields rows, falling back to a per-statement recovery pass.
Problems are recorded in :class:`DumpDiagnostics` and never abort the
parse; only a dump that cannot be read is fatal.
"""

from __future__ import annotations

import dataclasses
import datetime
import gzip
import json
import logging
import os
from typing import Any, Sequence

from . import DumpReadError
from .schema import count_create_statements, extract_schema
from .strategies import (
    DEFAULT_STRATEGIES,
    Extraction,
    InsertStrategy,
    Row,
    RowError,
    excerpt,
    find_insert_statements,
    recover_rows,
)

LOGGER = logging.getLogger(__name__)

ParsedDump = dict[str, list[Row]]

# Statements listed per table in the text report.
REPORTED_STATEMENTS = 5


@dataclasses.dataclass
class TableDiagnostics:
    table: str
    schema_found: bool = False
    columns: list[str] = dataclasses.field(default_factory=list)
    statement_count: int = 0
    statements: list[str] = dataclasses.field(default_factory=list)
    strategy: str | None = None
    rows_extracted: int = 0
    errors: list[RowError] = dataclasses.field(default_factory=list)
    warnings: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class DumpDiagnostics:
    dump_path: str | None = None
    file_size: int = 0
    generated_at: str = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat()
    )
    tables: dict[str, TableDiagnostics] = dataclasses.field(default_factory=dict)
    fatal_error: str | None = None

    @property
    def rows_extracted(self) -> int:
        return sum(t.rows_extracted for t in self.tables.values())

    @property
    def failed_tables(self) -> list[str]:
        return [
            name
            for name, t in self.tables.items()
            if not t.schema_found or t.rows_extracted == 0
        ]

    def render(self) -> str:
        """Human readable report, one section per table."""
        lines = [
            "SQL DUMP PARSE DIAGNOSTICS",
            "==========================",
            f"File: {self.dump_path or '<memory>'}",
            f"Date: {self.generated_at}",
            f"File size: {self.file_size / 1024 / 1024:.2f} MB",
            "",
        ]
        if self.fatal_error:
            lines += [f"ERROR READING SQL DUMP: {self.fatal_error}", ""]

        for t in self.tables.values():
            lines.append(f"Table: {t.table}")
            if not t.schema_found:
                lines += ["ERROR: Could not extract schema", ""]
                continue
            lines.append(f"Columns ({len(t.columns)}): {', '.join(t.columns)}")
            lines.append(f"Found {t.statement_count} INSERT statements")
            for idx, stmt in enumerate(t.statements, start=1):
                lines.append(f"Statement {idx}: {stmt}")
            if t.statement_count > len(t.statements):
                lines.append(f"... and {t.statement_count - len(t.statements)} more")
            for warning in t.warnings:
                lines.append(f"WARNING: {warning}")
            for err in t.errors:
                lines.append(f"Parse error: {err.message}: {err.excerpt}")
            if t.rows_extracted:
                lines.append(
                    f"Extracted {t.rows_extracted} rows for table {t.table} ({t.strategy})"
                )
            else:
                lines.append(f"No data rows extracted for table {t.table}")
            lines.append("")
        return "\n".join(lines) + "\n"

    def append_to(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(self.render())


def report_to_dict(diagnostics: DumpDiagnostics) -> dict[str, Any]:
    return {
        "dump_path": diagnostics.dump_path,
        "file_size": diagnostics.file_size,
        "generated_at": diagnostics.generated_at,
        "fatal_error": diagnostics.fatal_error,
        "rows_extracted": diagnostics.rows_extracted,
        "tables": {
            name: {
                "schema_found": t.schema_found,
                "columns": list(t.columns),
                "statement_count": t.statement_count,
                "strategy": t.strategy,
                "rows_extracted": t.rows_extracted,
                "errors": [dataclasses.asdict(e) for e in t.errors],
                "warnings": list(t.warnings),
            }
            for name, t in diagnostics.tables.items()
        },
    }


def write_report_json(diagnostics: DumpDiagnostics, path: str) -> None:
    payload = json.dumps(
        report_to_dict(diagnostics), ensure_ascii=False, indent=2, sort_keys=True
    )
    if path == "-":
        print(payload)
        return
    with open(path, "w", encoding="utf-8") as f:
        f.write(payload)
        f.write("\n")


def read_dump(path: str) -> str:
    """Read the whole dump, handling gzip compression."""
    try:
        if path.endswith(".gz"):
            with gzip.open(path, "rt", encoding="utf-8", errors="replace") as f:
                return f.read()
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except (OSError, EOFError) as exc:
        raise DumpReadError(f"Cannot read SQL dump {path}: {exc}") from exc


class DumpParser:
    """Parser for MySQL dump text."""

    def __init__(
        self,
        dump_text: str,
        *,
        strategies: Sequence[InsertStrategy] = DEFAULT_STRATEGIES,
        detect_booleans: bool = False,
        dump_path: str | None = None,
        progress=None,
    ):
        self.dump_text = dump_text
        self.strategies = tuple(strategies)
        self.detect_booleans = detect_booleans
        self.tables: ParsedDump = {}
        self.diagnostics = DumpDiagnostics(
            dump_path=dump_path, file_size=len(dump_text.encode("utf-8"))
        )
        self._progress = progress
        self._parse_task = None

    def _extract(self, table_name: str, columns: list[str], diag: TableDiagnostics) -> Extraction | None:
        for strategy in self.strategies:
            extraction = strategy.try_extract(
                self.dump_text,
                table_name,
                columns,
                detect_booleans=self.detect_booleans,
            )
            if extraction is not None:
                return extraction

        statements = find_insert_statements(self.dump_text, table_name)
        if not statements:
            return None
        LOGGER.debug(
            "No dialect matched %s, recovering %d statements individually",
            table_name,
            len(statements),
        )
        extraction = recover_rows(
            statements, columns, detect_booleans=self.detect_booleans
        )
        if not extraction.rows:
            diag.errors.extend(extraction.errors)
            return None
        return extraction

    def parse_table(self, table_name: str) -> list[Row]:
        diag = TableDiagnostics(table=table_name)
        self.diagnostics.tables[table_name] = diag

        columns = extract_schema(self.dump_text, table_name)
        if columns is None:
            LOGGER.warning("Could not find schema for table: %s", table_name)
            self.tables[table_name] = []
            return []

        diag.schema_found = True
        diag.columns = list(columns)
        if not columns:
            diag.warnings.append("CREATE TABLE declares no recognisable columns")
        if count_create_statements(self.dump_text, table_name) > 1:
            diag.warnings.append("multiple CREATE TABLE statements, using the first")

        statements = find_insert_statements(self.dump_text, table_name)
        diag.statement_count = len(statements)
        diag.statements = [excerpt(s.text) for s in statements[:REPORTED_STATEMENTS]]

        extraction = self._extract(table_name, columns, diag)
        if extraction is None:
            LOGGER.info("No data found for table %s", table_name)
            self.tables[table_name] = []
            return []

        diag.strategy = extraction.strategy
        diag.rows_extracted = len(extraction.rows)
        diag.errors.extend(extraction.errors)
        self.tables[table_name] = extraction.rows
        LOGGER.info(
            "Found %d rows for table %s using %s",
            len(extraction.rows),
            table_name,
            extraction.strategy,
        )
        return extraction.rows

    def parse(self, table_names: Sequence[str]) -> ParsedDump:
        """Extract every table in *table_names*, in order."""
        if self._progress is not None:
            self._parse_task = self._progress.add_task(
                "Parse dump file", total=len(table_names)
            )

        for i, table_name in enumerate(table_names, start=1):
            self.parse_table(table_name)
            if self._progress is not None and self._parse_task is not None:
                self._progress.update(self._parse_task, completed=i)

        return self.tables


def parse_dump(
    dump_text: str,
    table_names: Sequence[str],
    *,
    strategies: Sequence[InsertStrategy] = DEFAULT_STRATEGIES,
    detect_booleans: bool = False,
    progress=None,
) -> tuple[ParsedDump, DumpDiagnostics]:
    parser = DumpParser(
        dump_text,
        strategies=strategies,
        detect_booleans=detect_booleans,
        progress=progress,
    )
    return parser.parse(table_names), parser.diagnostics


def parse_dump_file(
    dump_path: str,
    table_names: Sequence[str],
    *,
    diagnostics_path: str | None = None,
    strategies: Sequence[InsertStrategy] = DEFAULT_STRATEGIES,
    detect_booleans: bool = False,
    progress=None,
) -> tuple[ParsedDump, DumpDiagnostics]:
    """Read and parse a dump file, appending diagnostics when a path is given.

    Raises :class:`DumpReadError` when the file cannot be read; the
    diagnostics artifact is written before the error propagates.
    """
    try:
        dump_text = read_dump(dump_path)
    except DumpReadError as exc:
        LOGGER.error("%s", exc)
        if diagnostics_path:
            DumpDiagnostics(dump_path=dump_path, fatal_error=str(exc)).append_to(
                diagnostics_path
            )
        raise

    LOGGER.info(
        "Loaded SQL file %s: %.2f MB", dump_path, len(dump_text) / 1024 / 1024
    )
    parser = DumpParser(
        dump_text,
        strategies=strategies,
        detect_booleans=detect_booleans,
        dump_path=dump_path,
        progress=progress,
    )
    tables = parser.parse(table_names)
    if diagnostics_path:
        parser.diagnostics.append_to(diagnostics_path)
    return tables, parser.diagnostics
