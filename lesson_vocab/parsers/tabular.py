"""Split delimited vocabulary text into rows of raw string fields.

The source files come from spreadsheet exports and are not consistent:
some are tab-separated, some comma-separated, some start with a UTF-8 BOM
and line endings vary. The delimiter is decided once from the header line.

Fields are scanned with a small state machine rather than a regex:

  UNQUOTED      plain field text, ends at the delimiter
  QUOTED        inside "...", the delimiter is literal
  QUOTED_QUOTE  just saw a quote inside a quoted field; a second quote
                is an escaped ``"``, anything else closes the field
"""
from __future__ import annotations

import re
from enum import Enum

from lesson_vocab.errors import EmptyInputError

BOM = "\ufeff"
TAB = "\t"
COMMA = ","

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class _State(Enum):
    UNQUOTED = 0
    QUOTED = 1
    QUOTED_QUOTE = 2


def split_lines(text: str) -> list[str]:
    """Return the non-blank lines of *text*, BOM removed."""
    if text.startswith(BOM):
        text = text[1:]
    return [line for line in _LINE_BREAK.split(text) if line.strip()]


def detect_delimiter(header_line: str) -> str:
    return TAB if TAB in header_line else COMMA


def tokenize_line(line: str, delimiter: str) -> list[str]:
    """Tokenize one line into fields.

    Never raises. An unterminated quote runs to the end of the line, and a
    quote in the middle of an unquoted field is kept as a literal character.
    """
    fields: list[str] = []
    buf: list[str] = []
    state = _State.UNQUOTED

    for ch in line:
        if state is _State.QUOTED:
            if ch == '"':
                state = _State.QUOTED_QUOTE
            else:
                buf.append(ch)
        elif state is _State.QUOTED_QUOTE:
            if ch == '"':
                buf.append('"')
                state = _State.QUOTED
            elif ch == delimiter:
                fields.append("".join(buf))
                buf = []
                state = _State.UNQUOTED
            else:
                # Text after the closing quote; keep it.
                buf.append(ch)
                state = _State.UNQUOTED
        elif ch == delimiter:
            fields.append("".join(buf))
            buf = []
        elif ch == '"' and not "".join(buf).strip():
            # Opening quote; leading blanks before it are dropped.
            buf = []
            state = _State.QUOTED
        else:
            buf.append(ch)

    fields.append("".join(buf))
    return fields


def decode(raw_text: str) -> list[list[str]]:
    """Decode *raw_text* into token rows; the first row is the header.

    Raises EmptyInputError when there is no header plus at least one data line.
    """
    lines = split_lines(raw_text)
    if len(lines) < 2:
        raise EmptyInputError(
            f"expected a header and at least one data line, got {len(lines)} line(s)"
        )
    delimiter = detect_delimiter(lines[0])
    return [tokenize_line(line, delimiter) for line in lines]
