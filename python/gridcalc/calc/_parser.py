"""Formula parser: reference extraction, range expansion and token resolution."""

from __future__ import annotations

import math
import re

from gridcalc._utils import Coordinate, a1_to_rowcol, is_valid_coordinate
from gridcalc.calc._functions import is_supported
from gridcalc.calc._protocol import InvalidToken

# ---------------------------------------------------------------------------
# Regex patterns for reference extraction
# ---------------------------------------------------------------------------

# References are upper-case only: "a1" is not a reference.
REFERENCE_RE = re.compile(r"[A-Z]+[0-9]+")

# Function call head: SUM(
_FUNC_HEAD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9_.]*)\s*\(")

# Range: A1:B5
_RANGE_RE = re.compile(r"([A-Z]+[0-9]+)\s*:\s*([A-Z]+[0-9]+)")

# A function argument that is exactly one reference or one range
_ARGUMENT_REF_RE = re.compile(r"[A-Z]+[0-9]+(?:\s*:\s*[A-Z]+[0-9]+)?")


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(expr: str) -> list[str]:
    """Extract every reference-shaped token, in first-seen order, no duplicates.

    Range endpoints are returned as two separate references, which is how the
    arithmetic evaluator sees them.
    """
    refs: list[str] = []
    seen: set[str] = set()
    for m in REFERENCE_RE.finditer(expr):
        ref = m.group(0)
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    return refs


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def range_bounds(range_ref: str) -> tuple[int, int, int, int]:
    """Normalized ``(r_min, c_min, r_max, c_max)`` of a range like ``"C3:A1"``.

    Raises InvalidToken when either endpoint is not a valid reference.
    """
    parts = [p.strip() for p in range_ref.split(":")]
    if len(parts) != 2:
        raise InvalidToken(f"Invalid range: {range_ref!r}")
    start = a1_to_rowcol(parts[0])
    end = a1_to_rowcol(parts[1])
    if start is None or end is None or not (
        is_valid_coordinate(start) and is_valid_coordinate(end)
    ):
        raise InvalidToken(f"Invalid range: {range_ref!r}")
    return (
        min(start[0], end[0]),
        min(start[1], end[1]),
        max(start[0], end[0]),
        max(start[1], end[1]),
    )


def range_shape(range_ref: str) -> tuple[int, int]:
    """``(n_rows, n_cols)`` of a range."""
    r_min, c_min, r_max, c_max = range_bounds(range_ref)
    return r_max - r_min + 1, c_max - c_min + 1


def expand_range(range_ref: str) -> list[Coordinate]:
    """Expand ``"A1:B3"`` into coordinates in row-major order.

    ``A1:B3`` -> A1, B1, A2, B2, A3, B3.  Corners may be given in any order.
    """
    r_min, c_min, r_max, c_max = range_bounds(range_ref)
    return [
        (r, c)
        for r in range(r_min, r_max + 1)
        for c in range(c_min, c_max + 1)
    ]


def split_range(range_ref: str, shape: tuple[int, int]) -> tuple[list[Coordinate], int]:
    """Split a range against a grid of *shape* ``(n_rows, n_cols)``.

    Returns the coordinates inside the grid in row-major order, and the
    number of cells that fall outside it.  Only the inside part is ever
    materialised, so ``A1:A1048576`` over a small grid stays cheap.
    """
    r_min, c_min, r_max, c_max = range_bounds(range_ref)
    n_rows, n_cols = range_shape(range_ref)
    inside = [
        (r, c)
        for r in range(r_min, min(r_max, shape[0] - 1) + 1)
        for c in range(c_min, min(c_max, shape[1] - 1) + 1)
    ]
    return inside, n_rows * n_cols - len(inside)


# ---------------------------------------------------------------------------
# Token resolution
# ---------------------------------------------------------------------------


def parse_number(token: str) -> int | float | None:
    """Parse a finite numeric literal, keeping ints as ints."""
    if "_" in token:
        return None
    try:
        num = float(token)
    except ValueError:
        return None
    if not math.isfinite(num):
        return None
    if re.fullmatch(r"\s*[+-]?\d+\s*", token):
        return int(token)
    return num


def resolve_token(token: str) -> list[Coordinate] | int | float:
    """Resolve a function argument token.

    A range or single reference resolves to a list of coordinates; a numeric
    literal resolves to the number itself.  Anything else raises InvalidToken.
    """
    token = token.strip()
    if ":" in token:
        return expand_range(token)

    coord = a1_to_rowcol(token)
    if coord is not None:
        if not is_valid_coordinate(coord):
            raise InvalidToken(f"Invalid reference: {token!r}")
        return [coord]

    num = parse_number(token)
    if num is not None:
        return num
    raise InvalidToken(f"Invalid token: {token!r}")


# ---------------------------------------------------------------------------
# Function call recognition
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    for i in range(start + 1, len(expr)):
        ch = expr[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def match_function_call(expr: str) -> tuple[str, str] | None:
    """If *expr* is exactly ``NAME(balanced_args)``, return ``(NAME, args)``.

    ``SUM(A1:A5)*2`` is NOT matched: there is trailing content after the
    close-paren.  The name is returned upper-cased.
    """
    stripped = expr.strip()
    m = _FUNC_HEAD_RE.match(stripped)
    if not m:
        return None
    open_idx = m.end() - 1
    close_idx = _find_matching_paren(stripped, open_idx)
    if close_idx >= 0 and close_idx == len(stripped) - 1:
        return m.group(1).upper(), stripped[open_idx + 1 : close_idx]
    return None


def split_arguments(args_str: str) -> list[str]:
    """Split on commas at paren depth 0 and strip each argument.

    An empty or blank argument list yields ``[]``.
    """
    if not args_str.strip():
        return []
    args: list[str] = []
    depth = 0
    current = ""
    for ch in args_str:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(current.strip())
            current = ""
            continue
        current += ch
    args.append(current.strip())
    return args


# ---------------------------------------------------------------------------
# Dependency extraction
# ---------------------------------------------------------------------------


def parse_range_references(formula: str) -> list[str]:
    """Extract every ``A1:B5`` range token, in first-seen order, no duplicates.

    Whitespace around the colon is dropped: ``"A1 : B2"`` gives ``"A1:B2"``.
    """
    ranges: list[str] = []
    seen: set[str] = set()
    for m in _RANGE_RE.finditer(formula):
        rng = f"{m.group(1)}:{m.group(2)}"
        if rng not in seen:
            ranges.append(rng)
            seen.add(rng)
    return ranges


def all_references(
    formula: str,
    bounds: tuple[int, int] | None = None,
) -> list[Coordinate]:
    """Every cell *formula* mentions: single references plus expanded ranges.

    Endpoints of a range are not counted twice as single references.  With
    *bounds* ranges are clipped as in :func:`split_range`.  Malformed
    references (``A0``) are skipped.
    """
    coords: list[Coordinate] = []
    seen: set[Coordinate] = set()

    def _add(coord: Coordinate) -> None:
        if coord not in seen:
            coords.append(coord)
            seen.add(coord)

    range_spans = [(m.start(), m.end()) for m in _RANGE_RE.finditer(formula)]
    for m in REFERENCE_RE.finditer(formula):
        if any(s <= m.start() < e for s, e in range_spans):
            continue
        coord = a1_to_rowcol(m.group(0))
        if coord is not None and is_valid_coordinate(coord):
            _add(coord)

    for rng in parse_range_references(formula):
        try:
            if bounds is None:
                cells = expand_range(rng)
            else:
                cells, _ = split_range(rng, bounds)
        except InvalidToken:
            continue
        for coord in cells:
            _add(coord)
    return coords


def formula_references(
    formula: str,
    bounds: tuple[int, int] | None = None,
) -> list[Coordinate]:
    """Every coordinate evaluating *formula* reads from.

    Mirrors the evaluator's dispatch: a supported function call reads the
    cells its reference and range arguments cover, anything else reads every
    reference-shaped token.  With *bounds* ``(n_rows, n_cols)`` ranges are
    clipped to the grid, since cells outside it are always empty.
    """
    body = formula[1:] if formula.startswith("=") else formula

    call = match_function_call(body)
    if call is not None and is_supported(call[0]):
        coords: list[Coordinate] = []
        seen: set[Coordinate] = set()
        for arg in split_arguments(call[1]):
            # Other argument shapes are literals or invalid: they read no cell
            if not _ARGUMENT_REF_RE.fullmatch(arg):
                continue
            for coord in all_references(arg, bounds):
                if coord not in seen:
                    coords.append(coord)
                    seen.add(coord)
        return coords

    refs = (a1_to_rowcol(ref) for ref in parse_references(body))
    return [c for c in refs if c is not None and is_valid_coordinate(c)]
