"""Recover ordered column names from ``CREATE TABLE`` statements."""

from __future__ import annotations

import re

from .splitter import find_statement_end, split_row_into_fields

# Definitions inside a table body that are not columns.
_CONSTRAINT_RE = re.compile(
    r"^(?:PRIMARY\s+KEY|UNIQUE|KEY|INDEX|FULLTEXT|SPATIAL|CONSTRAINT|FOREIGN\s+KEY|CHECK)\b",
    re.IGNORECASE,
)
_COLUMN_RE = re.compile(r'^(?:`([^`]+)`|"([^"]+)")')


def _create_table_re(table_name: str) -> re.Pattern[str]:
    # Keywords are case-insensitive, the table name is matched exactly.
    name = re.escape(table_name)
    return re.compile(
        r"(?i:CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?)"
        r"(?:`[^`]+`\.)?(?:`" + name + r"`|\"" + name + r"\")\s*\("
    )


def find_table_body(dump_text: str, table_name: str) -> str | None:
    """Return the text between the parentheses of the table's CREATE statement."""
    match = _create_table_re(table_name).search(dump_text)
    if match is None:
        return None

    open_paren = match.end() - 1
    end = find_statement_end(dump_text, open_paren)
    statement = dump_text[open_paren : end if end != -1 else len(dump_text)]

    # The body closes at the parenthesis that balances the opening one; any
    # ENGINE/CHARSET clause follows it.
    depth = 0
    quote: str | None = None
    escaped = False
    for i, char in enumerate(statement):
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return statement[1:i]
    return statement[1:]


def columns_from_body(body: str) -> list[str]:
    columns: list[str] = []
    for definition in split_row_into_fields(body):
        definition = definition.strip()
        if not definition or _CONSTRAINT_RE.match(definition):
            continue
        match = _COLUMN_RE.match(definition)
        if match:
            columns.append(match.group(1) or match.group(2))
    return columns


def extract_schema(dump_text: str, table_name: str) -> list[str] | None:
    """Return the declared column names of *table_name* in order.

    ``None`` means no CREATE TABLE statement exists for the table; an empty
    list means the statement was found but declares no recognisable columns.
    """
    body = find_table_body(dump_text, table_name)
    if body is None:
        return None
    return columns_from_body(body)


def count_create_statements(dump_text: str, table_name: str) -> int:
    return len(_create_table_re(table_name).findall(dump_text))
