"""Convert a MySQL dump into denormalized documents with stable identifiers."""

from __future__ import annotations

__version__ = "0.3.0"


# Exceptions
class MigrationError(RuntimeError):
    pass


class DumpReadError(MigrationError):
    pass


class StatementError(MigrationError):
    pass


class MappingFileError(MigrationError):
    pass


class ConfigError(MigrationError):
    pass


from .idmap import IdentifierMapper  # noqa: E402
from .lexer import parse_value  # noqa: E402
from .parser import DumpParser, parse_dump, parse_dump_file  # noqa: E402
from .schema import extract_schema  # noqa: E402
from .splitter import split_row_into_fields, split_rows  # noqa: E402

__all__ = [
    "ConfigError",
    "DumpParser",
    "DumpReadError",
    "IdentifierMapper",
    "MappingFileError",
    "MigrationError",
    "StatementError",
    "extract_schema",
    "parse_dump",
    "parse_dump_file",
    "parse_value",
    "split_row_into_fields",
    "split_rows",
]
