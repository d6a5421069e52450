"""Spreadsheet-style cell addressing (A1 notation)."""

import re

_A1_RE = re.compile(r"^([A-Za-z]+)(\d+)$")


def column_letter(index: int) -> str:
    """Convert a 1-based column index to letters: 1 -> A, 26 -> Z, 27 -> AA."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_index(letters: str) -> int:
    """Inverse of column_letter: A -> 1, AZ -> 52."""
    letters = letters.strip().upper()
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index


def cell_reference(row: int, column: int) -> str:
    if row < 1:
        raise ValueError(f"Row must be >= 1, got {row}")
    return f"{column_letter(column)}{row}"


def parse_cell_reference(ref: str) -> tuple[int, int]:
    """Split "C5" into (5, 3)."""
    match = _A1_RE.match(ref.strip())
    if match is None:
        raise ValueError(f"Invalid cell reference: {ref!r}")
    return int(match.group(2)), column_index(match.group(1))


def range_reference(sheet_name: str, row: int, column: int) -> str:
    return f"{sheet_name}!{cell_reference(row, column)}"
