"""A1-style reference helpers.

Coordinates are zero-based ``(row, col)`` tuples.  Column letters use
bijective base-26 (A=0, Z=25, AA=26, ...), row numbers are 1-based in text.
"""

from __future__ import annotations

import re

Coordinate = tuple[int, int]

_A1_RE = re.compile(r"^([A-Z]+)([0-9]+)$")


def column_label(index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA', 701 -> 'ZZ', 702 -> 'AAA'."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    label = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def column_index(letters: str) -> int:
    """'A' -> 0, 'Z' -> 25, 'AA' -> 26."""
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def rowcol_to_a1(row: int, col: int) -> str:
    """Convert a zero-based (row, col) pair to a label like ``"B3"``."""
    if row < 0:
        raise ValueError(f"Row index must be >= 0, got {row}")
    return f"{column_label(col)}{row + 1}"


def a1_to_rowcol(label: str) -> Coordinate | None:
    """Convert ``"B3"`` to ``(2, 1)``.

    Only upper-case letters followed by digits are accepted; anything else
    returns None.  A zero row (``"A0"``) decodes to row ``-1``, which callers
    must reject with :func:`is_valid_coordinate`.
    """
    m = _A1_RE.match(label)
    if not m:
        return None
    return int(m.group(2)) - 1, column_index(m.group(1))


def is_valid_coordinate(coord: Coordinate | None) -> bool:
    """True when *coord* is a decoded coordinate with non-negative indices."""
    return coord is not None and coord[0] >= 0 and coord[1] >= 0
