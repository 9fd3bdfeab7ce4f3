"""GridEvaluator: recomputes every formula cell of a grid.

Two strategies are available:

``"ordered"`` (default)
    Builds a :class:`DependencyGraph` once per pass and evaluates formula
    cells component by component, dependencies first, memoising each result.
    Cells that form a cycle read each other (and themselves) as ``0``, so
    ``A1 = B1+1`` / ``B1 = A1+1`` settles on ``1`` for both cells.

``"recursive"``
    Evaluates each formula cell from scratch, descending into referenced
    formulas with a fresh :class:`CycleGuard` per cell and no memoisation.
    Nested formulas are kept on an explicit stack, so long reference chains
    do not hit the interpreter's recursion limit.

Whatever the strategy, no exception escapes: a malformed formula, a broken
reference or a cycle resolves to ``0`` and is reported as a
:class:`Diagnostic`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Generator, Sequence
from typing import Any

from gridcalc._grid import Grid
from gridcalc._utils import Coordinate, a1_to_rowcol, is_valid_coordinate, rowcol_to_a1
from gridcalc.calc._arith import evaluate_arithmetic, substitute_references
from gridcalc.calc._functions import FunctionRegistry
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._guard import CycleGuard
from gridcalc.calc._parser import (
    match_function_call,
    parse_references,
    resolve_token,
    split_arguments,
    split_range,
)
from gridcalc.calc._protocol import (
    Diagnostic,
    ErrorKind,
    EvaluationResult,
    FormulaError,
    InvalidToken,
)
from gridcalc.calc._reader import CellKind, CellReader, to_number

logger = logging.getLogger(__name__)

Number = int | float

STRATEGIES = ("ordered", "recursive")


def _is_finite(value: Number) -> bool:
    # ints have no inf/nan, and may be too large for math.isfinite
    return isinstance(value, int) or math.isfinite(value)


# A formula in progress: yields the cells it needs, receives their values and
# finally returns its own value.
Steps = Generator[Coordinate, Number, Number]


class _Pass:
    """State for one evaluation pass over one grid."""

    __slots__ = ("reader", "functions", "memoize", "memo", "current", "_diagnostics")

    def __init__(
        self,
        reader: CellReader,
        functions: FunctionRegistry,
        memoize: bool = True,
    ) -> None:
        self.reader = reader
        self.functions = functions
        self.memoize = memoize
        self.memo: dict[Coordinate, Number] = {}
        self.current: Coordinate = (0, 0)
        # Insertion-ordered set of diagnostics
        self._diagnostics: dict[Diagnostic, None] = {}

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    def record(self, kind: ErrorKind, detail: str) -> None:
        self._diagnostics[Diagnostic(self.current, kind, detail)] = None

    # ------------------------------------------------------------------
    # Top-level evaluation
    # ------------------------------------------------------------------

    def evaluate_top(self, cell: Coordinate, formula: str, guard: CycleGuard) -> Number:
        """Evaluate one formula cell as an outermost request.

        The result is memoised when the pass memoises.
        """
        self.current = cell
        try:
            value = self._run(cell, formula, guard)
        except Exception as e:  # noqa: BLE001
            logger.debug("Cannot evaluate formula %r in %s: %s", formula, rowcol_to_a1(*cell), e)
            self.record(ErrorKind.INVALID_FORMULA, str(e) or type(e).__name__)
            value = 0
        if not _is_finite(value):
            logger.debug("Non-finite result %r for %s", value, rowcol_to_a1(*cell))
            self.record(ErrorKind.INVALID_EXPRESSION, f"non-finite result {value!r}")
            value = 0
        if self.memoize:
            self.memo[cell] = value
        return value

    def _run(self, cell: Coordinate, formula: str, guard: CycleGuard) -> Number:
        """Evaluate *formula* and every formula it reads on an explicit stack.

        Each stack entry is a suspended formula waiting for the value of one
        cell, so chain depth is bounded by memory, not the interpreter's
        recursion limit.
        """
        guard.push(cell)
        stack: list[tuple[Coordinate, Steps]] = [(cell, self._steps(formula))]
        reply: Number | None = None
        try:
            while True:
                owner, steps = stack[-1]
                try:
                    wanted = steps.send(reply)  # type: ignore[arg-type]
                except StopIteration as done:
                    stack.pop()
                    guard.pop(owner)
                    if not stack:
                        return done.value
                    reply = done.value if _is_finite(done.value) else 0
                    continue
                reply = self._read(wanted, guard, stack)
        finally:
            for owner, _ in stack:
                guard.pop(owner)

    def _read(
        self,
        cell: Coordinate,
        guard: CycleGuard,
        stack: list[tuple[Coordinate, Steps]],
    ) -> Number | None:
        """Value of *cell* for the formula on top of *stack*.

        A formula cell that still has to be evaluated is pushed onto *stack*
        instead, and None is returned to start it.
        """
        if cell in guard:
            logger.debug(
                "Circular reference to %s while evaluating %s",
                rowcol_to_a1(*cell), rowcol_to_a1(*self.current),
            )
            self.record(ErrorKind.CIRCULAR_REFERENCE, rowcol_to_a1(*cell))
            return 0
        if cell in self.memo:
            return self.memo[cell]

        kind, raw = self.reader.read(*cell)
        if kind is CellKind.FORMULA:
            guard.push(cell)
            stack.append((cell, self._steps(raw)))
            return None
        return to_number(raw)

    # ------------------------------------------------------------------
    # Formula dispatch
    # ------------------------------------------------------------------

    def _steps(self, formula: str) -> Steps:
        """Evaluate formula text (leading ``=`` included).

        A supported ``NAME(args)`` call goes to the function registry;
        everything else, unknown function names included, is arithmetic.
        """
        body = formula[1:].strip()
        call = match_function_call(body)
        if call is not None and self.functions.has(call[0]):
            name, args_str = call
            operands: list[Number] = []
            blanks = 0
            for arg in split_arguments(args_str):
                resolved, outside = self._resolve_argument(arg)
                blanks += outside
                if isinstance(resolved, list):
                    for coord in resolved:
                        operands.append((yield coord))
                else:
                    operands.append(resolved)
            return self.functions.call(name, operands, blanks)

        values: dict[str, Number] = {}
        for label in parse_references(body):
            coord = a1_to_rowcol(label)
            if coord is None or not is_valid_coordinate(coord):
                self.record(ErrorKind.INVALID_REFERENCE, label)
                values[label] = 0
            else:
                values[label] = yield coord
        return self._evaluate_arithmetic(body, values)

    def _resolve_argument(self, arg: str) -> tuple[list[Coordinate] | Number, int]:
        """Resolve one function argument.

        Returns the in-grid coordinates to read (or a literal number) and the
        count of range cells lying outside the grid.  An unresolvable token
        contributes a single ``0``.
        """
        try:
            if ":" in arg:
                return split_range(arg.strip(), self.reader.shape)
            return resolve_token(arg), 0
        except InvalidToken as e:
            logger.debug("Invalid argument %r in %s: %s", arg, rowcol_to_a1(*self.current), e)
            self.record(e.kind, arg)
            return 0, 0

    def _evaluate_arithmetic(self, body: str, values: dict[str, Number]) -> Number:
        text = substitute_references(body, values.__getitem__)
        try:
            return evaluate_arithmetic(text)
        except FormulaError as e:
            logger.debug("Rejected expression %r in %s: %s", body, rowcol_to_a1(*self.current), e)
            self.record(e.kind, body)
            return 0


class GridEvaluator:
    """Evaluates every formula in a grid.

    Usage::

        evaluator = GridEvaluator()
        result = evaluator.evaluate([[1, 2, "=SUM(A1:B1)"]])
        result.values       # [[1, 2, 3]]
        result.diagnostics  # ()
    """

    def __init__(self, strategy: str = "ordered") -> None:
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy {strategy!r}; expected one of {STRATEGIES}")
        self._strategy = strategy
        self._functions = FunctionRegistry()

    @property
    def strategy(self) -> str:
        return self._strategy

    def evaluate(self, grid: Grid | Sequence[Sequence[Any]]) -> EvaluationResult:
        """Compute the value of every cell.

        Formula cells get their evaluated number, every other cell keeps its
        raw literal.  The grid itself is never modified.
        """
        reader = CellReader(grid)
        ordered = self._strategy == "ordered"
        state = _Pass(reader, self._functions, memoize=ordered)
        values = [list(row) if row is not None else [] for row in grid]

        results: dict[Coordinate, Number]
        if ordered:
            results, cyclic = self._evaluate_ordered(reader, state)
        else:
            cyclic = set()
            results = {
                cell: state.evaluate_top(cell, formula, CycleGuard())
                for cell, formula in reader.iter_formulas()
            }

        for (r, c), value in results.items():
            values[r][c] = value
        formula_cells = len(results)

        if state.diagnostics:
            logger.debug("Evaluated %d formula cells, %d diagnostics",
                         formula_cells, len(state.diagnostics))
        return EvaluationResult(
            values=values,
            diagnostics=state.diagnostics,
            total_formula_cells=formula_cells,
            cyclic_cells=frozenset(cyclic),
        )

    def _evaluate_ordered(
        self, reader: CellReader, state: _Pass,
    ) -> tuple[dict[Coordinate, Number], set[Coordinate]]:
        graph = DependencyGraph.from_grid(reader)
        try:
            # Acyclic grids need no component search
            components = [(cell,) for cell in graph.topological_order()]
        except ValueError:
            components = graph.components()
        cyclic: set[Coordinate] = set()
        for component in components:
            # Members of a cycle see each other as already on the stack
            seed: tuple[Coordinate, ...] = ()
            if graph.is_cyclic(component):
                seed = component
                cyclic.update(component)
            for cell in component:
                state.evaluate_top(cell, graph.formulas[cell], CycleGuard(seed))
        return state.memo, cyclic

    def evaluate_cell(self, grid: Grid | Sequence[Sequence[Any]], row: int, col: int) -> Any:
        """Computed value of a single cell.

        With the recursive strategy only the cells this one depends on are
        visited.  Out-of-grid cells are empty (None).
        """
        reader = CellReader(grid)
        kind, raw = reader.read(row, col)
        if kind is not CellKind.FORMULA:
            return raw
        if self._strategy == "ordered":
            return self.evaluate(grid).values[row][col]
        state = _Pass(reader, self._functions)
        return state.evaluate_top((row, col), raw, CycleGuard())


def evaluate_grid(
    grid: Grid | Sequence[Sequence[Any]],
    strategy: str = "ordered",
) -> EvaluationResult:
    """Evaluate *grid* and return values plus diagnostics."""
    return GridEvaluator(strategy=strategy).evaluate(grid)


def recompute(
    grid: Grid | Sequence[Sequence[Any]],
    strategy: str = "ordered",
) -> list[list[Any]]:
    """Return the computed-value view of *grid*.

    A pure function of the grid's raw contents: no cache, no exceptions.
    """
    return evaluate_grid(grid, strategy=strategy).values
