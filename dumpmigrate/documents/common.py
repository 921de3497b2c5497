"""Helpers shared by the document builders."""

from __future__ import annotations

import dataclasses
import datetime
import math
import re
from collections import defaultdict
from typing import Any, Iterable

from dateutil import parser as date_parser

Row = dict[str, Any]

_CAMEL_RE = re.compile(r"_([a-z0-9])")
_AMOUNT_RE = re.compile(r"\d+(?:\.\d+)?")


def camel(name: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


@dataclasses.dataclass
class Document:
    """Base for output documents; field names are emitted in camelCase."""

    def to_dict(self) -> dict[str, Any]:
        return {
            camel(f.name): _plain(getattr(self, f.name))
            for f in dataclasses.fields(self)
        }


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {camel(k): _plain(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return str(value)


def flag(value: Any) -> bool:
    """MySQL tinyint flags: only 1 is true."""
    if isinstance(value, bool):
        return value
    return value == 1 or value == "1"


def number(value: Any, default: int | float = 0) -> int | float:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    try:
        parsed = float(value) if isinstance(value, float) else float(str(value).strip())
    except ValueError:
        return default
    if not math.isfinite(parsed):
        return default
    return int(parsed) if parsed.is_integer() else parsed


def parse_amount(value: Any) -> float:
    """Amounts are stored as text like ``"Rs. 1,499"``; take the first number."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _AMOUNT_RE.search(str(value).replace(",", ""))
    return float(match.group(0)) if match else 0.0


def to_datetime(value: Any) -> datetime.datetime | None:
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            return None
        parsed = datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    else:
        raw = str(value).strip()
        if raw.startswith("0000-00-00"):
            return None
        try:
            parsed = date_parser.parse(raw)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def to_timestamp(value: Any, default: str | None = None) -> str | None:
    """ISO-8601 text for a dump date, or *default* when it is empty or invalid."""
    parsed = to_datetime(value)
    if parsed is None:
        return default
    return parsed.isoformat()


def full_name(user: Row | None) -> str:
    if not user:
        return ""
    if user.get("full_name"):
        return str(user["full_name"])
    return f"{text(user.get('f_name'))} {text(user.get('l_name'))}".strip()


def duration_text(months: Any) -> str:
    months = int(number(months))
    return f"{months} month{'s' if months > 1 else ''}"


def index_by(rows: Iterable[Row], key: str = "id") -> dict[Any, Row]:
    """First row per key value, in dump order."""
    index: dict[Any, Row] = {}
    for row in rows:
        index.setdefault(row.get(key), row)
    return index


def group_by(rows: Iterable[Row], key: str) -> dict[Any, list[Row]]:
    groups: dict[Any, list[Row]] = defaultdict(list)
    for row in rows:
        groups[row.get(key)].append(row)
    return groups
