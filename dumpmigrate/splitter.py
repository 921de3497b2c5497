"""Split INSERT value lists into rows and rows into field tokens.

Both scanners share one state machine: a quote character opens a string
literal that only the same quote closes, a backslash inside a string
escapes the next character, and parentheses only count outside strings.
Neither function raises; malformed input degrades to best-effort
boundaries.
"""

from __future__ import annotations

QUOTES = ("'", '"')


class _ScanState:
    __slots__ = ("quote", "escaped", "depth")

    def __init__(self) -> None:
        self.quote: str | None = None
        self.escaped = False
        self.depth = 0

    def feed(self, char: str) -> bool:
        """Advance over *char*. Returns True when it is structural (outside a string)."""
        if self.quote is not None:
            if self.escaped:
                self.escaped = False
            elif char == "\\":
                self.escaped = True
            elif char == self.quote:
                self.quote = None
            return False

        if char in QUOTES:
            self.quote = char
            return False
        if char == "(":
            self.depth += 1
        elif char == ")":
            self.depth -= 1
        return True


def split_rows(values_text: str) -> list[str]:
    """Split the text after ``VALUES`` into row texts without their parentheses.

    Accepts ``(a,b)``, ``(a,b),(c,d)`` and the stripped form ``a,b),(c,d``
    left behind by patterns that consume the outer parentheses.
    """
    text = values_text.strip()
    if text.endswith(";"):
        text = text[:-1].rstrip()
    if not text:
        return []
    if not text.startswith("("):
        text = "(" + text + ")"

    rows: list[str] = []
    current: list[str] = []
    state = _ScanState()
    in_row = False

    for char in text:
        structural = state.feed(char)
        if not in_row:
            # Between rows only the opening parenthesis matters; separators
            # and whitespace are dropped.
            if structural and char == "(":
                state.depth = 1
                in_row = True
                current = []
            elif structural:
                state.depth = 0
            continue

        if structural and char == ")" and state.depth == 0:
            rows.append("".join(current).strip())
            in_row = False
            continue
        current.append(char)

    if in_row and current:
        # Unterminated final row: keep what we have.
        rows.append("".join(current).strip())

    if not rows:
        return [values_text.strip()]
    return rows


def split_row_into_fields(row_text: str) -> list[str]:
    """Split one row text on top-level commas into raw, still quoted tokens."""
    fields: list[str] = []
    current: list[str] = []
    state = _ScanState()

    for char in row_text:
        structural = state.feed(char)
        if structural and char == "," and state.depth <= 0:
            fields.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    last = "".join(current).strip()
    if last:
        fields.append(last)
    return fields


def find_statement_end(text: str, start: int) -> int:
    """Return the index of the ``;`` ending the statement that starts at *start*.

    Returns ``-1`` when the text ends before the statement is terminated.
    """
    state = _ScanState()
    for i in range(start, len(text)):
        char = text[i]
        structural = state.feed(char)
        if structural and char == ";" and state.depth <= 0:
            return i
    return -1
