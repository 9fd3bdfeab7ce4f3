"""Dependency graph for formula cells with topological ordering."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Any

from gridcalc._utils import Coordinate
from gridcalc.calc._parser import formula_references
from gridcalc.calc._reader import CellReader


class DependencyGraph:
    """Tracks formula cell dependencies for evaluation ordering.

    Cells are zero-based ``(row, col)`` coordinates.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[Coordinate, set[Coordinate]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[Coordinate, set[Coordinate]] = {}
        # cell -> formula string
        self.formulas: dict[Coordinate, str] = {}

    def add_formula(
        self,
        cell: Coordinate,
        formula: str,
        bounds: tuple[int, int] | None = None,
    ) -> None:
        """Register a formula cell and its dependencies.

        *bounds* clips range references to the grid; see ``formula_references``.
        """
        self.formulas[cell] = formula
        refs = formula_references(formula, bounds)

        self.dependencies[cell] = set(refs)

        for ref in refs:
            if ref not in self.dependents:
                self.dependents[ref] = set()
            self.dependents[ref].add(cell)

    def _formula_deps(self, cell: Coordinate) -> list[Coordinate]:
        """Formula cells *cell* reads from, in row-major order."""
        return sorted(d for d in self.dependencies.get(cell, ()) if d in self.formulas)

    def topological_order(self) -> list[Coordinate]:
        """Return formula cells in evaluation order (Kahn's algorithm).

        Raises ValueError if a circular reference is detected.
        """
        formula_cells = sorted(self.formulas)
        if not formula_cells:
            return []

        # In-degree counts only dependencies that are themselves formulas
        in_degree: dict[Coordinate, int] = {
            cell: len(self._formula_deps(cell)) for cell in formula_cells
        }

        queue: deque[Coordinate] = deque(c for c in formula_cells if in_degree[c] == 0)

        order: list[Coordinate] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(self.dependents.get(cell, ())):
                if dep in self.formulas:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        if len(order) != len(formula_cells):
            missing = sorted(set(formula_cells) - set(order))
            raise ValueError(f"Circular reference detected involving: {missing}")

        return order

    def components(self) -> list[tuple[Coordinate, ...]]:
        """Strongly connected components of the formula cells, dependencies first.

        Uses an iterative Tarjan's algorithm.  Every component is emitted after
        all components it reads from, so evaluating them in the returned order
        always finds upstream values ready.  Members of a component are sorted
        row-major.
        """
        index: dict[Coordinate, int] = {}
        lowlink: dict[Coordinate, int] = {}
        on_stack: set[Coordinate] = set()
        stack: list[Coordinate] = []
        result: list[tuple[Coordinate, ...]] = []
        counter = 0

        for root in sorted(self.formulas):
            if root in index:
                continue
            work: list[tuple[Coordinate, Iterator[Coordinate]]] = []
            index[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work.append((root, iter(self._formula_deps(root))))

            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in index:
                        index[child] = lowlink[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(self._formula_deps(child))))
                        advanced = True
                        break
                    if child in on_stack:
                        lowlink[node] = min(lowlink[node], index[child])
                if advanced:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index[node]:
                    members: list[Coordinate] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        members.append(member)
                        if member == node:
                            break
                    result.append(tuple(sorted(members)))

        return result

    def is_cyclic(self, component: tuple[Coordinate, ...]) -> bool:
        """True for a component of two or more cells, or a self-referencing cell."""
        if len(component) > 1:
            return True
        cell = component[0]
        return cell in self.dependencies.get(cell, ())

    def cyclic_cells(self) -> set[Coordinate]:
        """Every formula cell that lies on a dependency cycle."""
        cells: set[Coordinate] = set()
        for component in self.components():
            if self.is_cyclic(component):
                cells.update(component)
        return cells

    @classmethod
    def from_grid(cls, grid: Any) -> DependencyGraph:
        """Build a dependency graph by scanning a grid for formula cells."""
        reader = grid if isinstance(grid, CellReader) else CellReader(grid)
        bounds = reader.shape
        graph = cls()
        for cell, formula in reader.iter_formulas():
            graph.add_formula(cell, formula, bounds)
        return graph
