"""Coerce a single SQL literal token into a Python value."""

from __future__ import annotations

import re
from typing import Union

Scalar = Union[None, bool, int, float, str]

_NUMERAL_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)$")

# MySQL string escapes. Anything else keeps its backslash (\% and \_ are
# only meaningful in LIKE patterns).
_ESCAPES = {
    "0": "\x00",
    "'": "'",
    '"': '"',
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
    "\\": "\\",
}


def unescape_string(body: str, quote: str = "'") -> str:
    """Decode backslash escapes and doubled quotes inside a string literal."""
    if "\\" not in body and quote * 2 not in body:
        return body

    out: list[str] = []
    i = 0
    n = len(body)
    while i < n:
        char = body[i]
        if char == "\\" and i + 1 < n:
            nxt = body[i + 1]
            if nxt in _ESCAPES:
                out.append(_ESCAPES[nxt])
            else:
                out.append(char)
                out.append(nxt)
            i += 2
            continue
        if char == quote and i + 1 < n and body[i + 1] == quote:
            out.append(quote)
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def parse_value(token: str, *, detect_booleans: bool = False) -> Scalar:
    """Convert one field token produced by the row splitter.

    ``NULL`` becomes ``None``, quoted tokens become unescaped strings (a
    quoted numeral stays a string), bare numerals become ``int`` or
    ``float``. ``TRUE``/``FALSE`` are only recognised when
    *detect_booleans* is set. Anything else is returned unchanged.
    """
    value = token.strip()

    if value.upper() == "NULL":
        return None

    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return unescape_string(value[1:-1], value[0])

    if _NUMERAL_RE.match(value):
        if "." in value:
            return float(value)
        return int(value)

    if detect_booleans:
        upper = value.upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False

    return token
