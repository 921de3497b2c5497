"""INSERT statement dialects, tried in order until one yields rows.

Each strategy is a header pattern that ends right after ``VALUES``; the
value list that follows is cut at the statement's terminating semicolon
by a string-aware scan, so semicolons inside literals never end a
statement early.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Sequence

from . import StatementError
from .lexer import parse_value
from .splitter import find_statement_end, split_row_into_fields, split_rows

EXCERPT_LENGTH = 200

Row = dict[str, Any]


def excerpt(text: str, limit: int = EXCERPT_LENGTH) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


@dataclasses.dataclass(frozen=True)
class RowError:
    excerpt: str
    message: str


@dataclasses.dataclass
class Extraction:
    strategy: str
    rows: list[Row] = dataclasses.field(default_factory=list)
    statements: int = 0
    errors: list[RowError] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class InsertStatement:
    text: str
    offset: int
    terminated: bool


def parse_column_list(text: str | None) -> list[str] | None:
    if not text:
        return None
    columns = [c.strip().strip('`"') for c in text.split(",")]
    columns = [c for c in columns if c]
    return columns or None


def build_row(
    values: Sequence[Any], columns: Sequence[str]
) -> Row:
    """Zip values onto columns; extra values are dropped, missing ones left unset."""
    return dict(zip(columns, values))


def parse_row_text(row_text: str, *, detect_booleans: bool = False) -> list[Any]:
    return [
        parse_value(token, detect_booleans=detect_booleans)
        for token in split_row_into_fields(row_text)
    ]


def rows_from_values(
    values_text: str,
    columns: Sequence[str],
    extraction: Extraction,
    *,
    split: bool = True,
    detect_booleans: bool = False,
) -> None:
    if split:
        row_texts = split_rows(values_text)
    else:
        text = values_text.strip().rstrip(";").strip()
        if text.startswith("(") and text.endswith(")"):
            text = text[1:-1]
        row_texts = [text]

    for row_text in row_texts:
        values = parse_row_text(row_text, detect_booleans=detect_booleans)
        if not values:
            extraction.errors.append(
                RowError(excerpt(row_text), "row contains no values")
            )
            continue
        extraction.rows.append(build_row(values, columns))


class InsertStrategy:
    """One INSERT dialect, identified by *name* in diagnostics."""

    def __init__(self, name: str, header: str, *, split: bool = True):
        self.name = name
        self.header = header
        self.split = split

    def __repr__(self) -> str:
        return f"InsertStrategy({self.name!r})"

    def pattern(self, table_name: str) -> re.Pattern[str]:
        return re.compile(self.header.format(table=re.escape(table_name)))

    def try_extract(
        self,
        dump_text: str,
        table_name: str,
        columns: Sequence[str],
        *,
        detect_booleans: bool = False,
    ) -> Extraction | None:
        """Return the rows this dialect finds, or ``None`` when it finds none."""
        extraction = Extraction(strategy=self.name)
        pattern = self.pattern(table_name)
        pos = 0
        while True:
            match = pattern.search(dump_text, pos)
            if match is None:
                break
            end = find_statement_end(dump_text, match.start())
            if end != -1 and end < match.end():
                # The header ran past its own statement into a later one.
                pos = end + 1
                continue
            extraction.statements += 1
            terminated = end != -1
            values_text = dump_text[match.end() : end] if terminated else dump_text[match.end() :]
            pos = end + 1 if terminated else len(dump_text)
            if not terminated:
                extraction.errors.append(
                    RowError(excerpt(match.group(0) + values_text), "statement is not terminated")
                )
            listed = parse_column_list(match.groupdict().get("columns"))
            rows_from_values(
                values_text,
                listed or columns,
                extraction,
                split=self.split,
                detect_booleans=detect_booleans,
            )

        if not extraction.rows:
            return None
        return extraction


_INTO = r"(?i:INSERT\s+INTO)\s+`{table}`"
_COLUMNS = r"\s*(?:\((?P<columns>[^()]*)\))?\s*"
_VALUES = r"(?i:VALUES)\s*"

STANDARD = InsertStrategy("standard", _INTO + _COLUMNS + _VALUES)
QUALIFIED = InsertStrategy(
    "qualified",
    r"(?i:(?:INSERT|REPLACE)(?:\s+(?:LOW_PRIORITY|DELAYED|HIGH_PRIORITY|IGNORE))*"
    r"(?:\s+INTO)?)\s+(?:`[^`]+`\.)?(?:`{table}`|\b{table}\b)"
    + _COLUMNS
    + _VALUES,
)
SINGLE_ROW = InsertStrategy("single_row", _INTO + _COLUMNS + _VALUES, split=False)
LOOSE = InsertStrategy("loose", _INTO + r"[\s\S]*?\b(?i:VALUES)\b\s*")

DEFAULT_STRATEGIES: tuple[InsertStrategy, ...] = (STANDARD, QUALIFIED, SINGLE_ROW, LOOSE)

_STATEMENT_RE = r"(?i:(?:INSERT|REPLACE)(?:\s+\w+)*?\s+INTO)\s+(?:`[^`]+`\.)?`{table}`"
_RECOVERY_VALUES_RE = re.compile(r"(?i:VALUES)\s*\((.*)\)", re.DOTALL)
_RECOVERY_COLUMNS_RE = re.compile(r"[^(]*?`\s*\((?P<columns>[^()]*)\)\s*(?i:VALUES)\b")


def find_insert_statements(dump_text: str, table_name: str) -> list[InsertStatement]:
    """Locate every INSERT/REPLACE statement that targets *table_name*."""
    pattern = re.compile(_STATEMENT_RE.format(table=re.escape(table_name)))
    statements: list[InsertStatement] = []
    pos = 0
    while True:
        match = pattern.search(dump_text, pos)
        if match is None:
            break
        end = find_statement_end(dump_text, match.end())
        if end == -1:
            statements.append(
                InsertStatement(dump_text[match.start() :], match.start(), False)
            )
            break
        statements.append(
            InsertStatement(dump_text[match.start() : end + 1], match.start(), True)
        )
        pos = end + 1
    return statements


def isolate_values(statement: str) -> str:
    match = _RECOVERY_VALUES_RE.search(statement)
    if match is None or not match.group(1).strip():
        raise StatementError("no VALUES list found")
    return match.group(1)


def statement_columns(statement: str) -> list[str] | None:
    """The explicit column list of an INSERT statement, if it has one."""
    match = _RECOVERY_COLUMNS_RE.match(statement)
    return parse_column_list(match.group("columns")) if match else None


def recover_rows(
    statements: Sequence[InsertStatement],
    columns: Sequence[str],
    *,
    detect_booleans: bool = False,
) -> Extraction:
    """Parse each statement on its own, skipping the ones that cannot be read."""
    extraction = Extraction(strategy="recovery", statements=len(statements))
    for statement in statements:
        try:
            values_text = isolate_values(statement.text)
        except StatementError as exc:
            extraction.errors.append(RowError(excerpt(statement.text), str(exc)))
            continue
        rows_from_values(
            "(" + values_text + ")",
            statement_columns(statement.text) or columns,
            extraction,
            detect_booleans=detect_booleans,
        )
    return extraction
