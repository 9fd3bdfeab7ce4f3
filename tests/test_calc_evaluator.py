"""Tests for gridcalc.calc GridEvaluator."""

from __future__ import annotations

import logging

import pytest

from gridcalc import Grid
from gridcalc.calc._evaluator import GridEvaluator, evaluate_grid, recompute
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._protocol import CalcEngine, ErrorKind


def _value(grid: list[list[object]], ref_row: int, ref_col: int, strategy: str = "ordered") -> object:
    return recompute(grid, strategy=strategy)[ref_row][ref_col]


class TestLoadAndCalculate:
    def test_sum_chain(self) -> None:
        grid = [[10], [20], ["=SUM(A1:A2)"], ["=A3*2"]]
        values = recompute(grid)
        assert values[2][0] == 30
        assert values[3][0] == 60

    def test_literal_formula(self) -> None:
        assert _value([["=42"]], 0, 0) == 42

    def test_direct_ref(self) -> None:
        assert _value([[100, "=A1"]], 0, 1) == 100

    def test_binary_operations(self) -> None:
        grid = [[10, "=A1+A2", "=A1-A2", "=A1*A2", "=A1/A2"], [3]]
        values = recompute(grid)
        assert values[0][1] == 13
        assert values[0][2] == 7
        assert values[0][3] == 30
        assert values[0][4] == pytest.approx(10 / 3)

    def test_precedence(self) -> None:
        assert _value([["=2+3*4"]], 0, 0) == 14
        assert _value([["=(2+3)*4"]], 0, 0) == 20

    def test_whitespace_around_formula(self) -> None:
        assert _value([["=  1 + 1  "]], 0, 0) == 2

    def test_literals_pass_through(self) -> None:
        grid = [[1, "text", None, 2.5]]
        assert recompute(grid) == [[1, "text", None, 2.5]]

    def test_input_not_modified(self) -> None:
        grid = [[1, "=A1+1"]]
        recompute(grid)
        assert grid == [[1, "=A1+1"]]

    def test_accepts_grid_object(self) -> None:
        grid = Grid([[1, 2, "=SUM(A1:B1)"]])
        assert recompute(grid) == [[1, 2, 3]]


class TestFunctions:
    def test_text_counts_as_zero(self) -> None:
        grid = [[1], [2], ["text"], ["=SUM(A1:A3)"]]
        assert _value(grid, 3, 0) == 3

    def test_count_includes_text_and_empty(self) -> None:
        grid = [[1, "x", None, "=COUNT(A1:C1)"]]
        assert _value(grid, 0, 3) == 3

    def test_average_over_empty_range(self) -> None:
        grid = [["=AVERAGE(B5:C6)", "=SUM(B5:C6)"]]
        values = recompute(grid)
        # Out-of-grid cells read as 0 and are still counted
        assert values[0][0] == 0
        assert values[0][1] == 0

    def test_case_insensitive(self) -> None:
        assert _value([[4, 8, "=average(A1:B1)"]], 0, 2) == 6

    def test_multiple_arguments(self) -> None:
        grid = [[1, 2, 3, "=MAX(A1, B1:C1, 10)", "=MIN(A1:C1, -5)"]]
        values = recompute(grid)
        assert values[0][3] == 10
        assert values[0][4] == -5

    def test_numeric_text_cell(self) -> None:
        assert _value([["4", "=SUM(A1, 1)"]], 0, 1) == 5

    def test_function_of_formula(self) -> None:
        grid = [[2, "=A1*3", "=SUM(A1:B1)"]]
        assert _value(grid, 0, 2) == 8

    def test_unknown_function_falls_through_to_arithmetic(self) -> None:
        result = evaluate_grid([[1, "=AVG(A1:A1)"]])
        assert result.values[0][1] == 0
        assert [d.kind for d in result.diagnostics] == [ErrorKind.INVALID_EXPRESSION]

    def test_function_inside_arithmetic_is_not_evaluated(self) -> None:
        assert _value([[1, "=SUM(A1)*2"]], 0, 1) == 0

    def test_invalid_argument_contributes_zero(self) -> None:
        result = evaluate_grid([[6, "=COUNT(A1, foo)", "=AVERAGE(A1, A0)"]])
        assert result.values[0][1] == 2
        assert result.values[0][2] == 3
        kinds = {d.kind for d in result.diagnostics}
        assert kinds == {ErrorKind.INVALID_REFERENCE}

    @pytest.mark.parametrize("strategy", ["ordered", "recursive"])
    def test_whole_column_range(self, strategy: str) -> None:
        grid = [[1], [2], [3], [None, "=SUM(A1:A1048576)", "=COUNT(A1:A1048576)"]]
        result = evaluate_grid(grid, strategy=strategy)
        assert result.values[3][1:] == [6, 1048576]
        assert result.diagnostics == ()

    def test_out_of_grid_cells_in_aggregates(self) -> None:
        grid = [[-4, -2, "=MAX(A1:B3)", "=MIN(A1:B1)", "=AVERAGE(A1:B4)"]]
        # Rows below the grid read as zeros
        assert recompute(grid)[0][2:] == [0, -4, -0.75]


class TestCycles:
    @pytest.mark.parametrize("strategy", ["ordered", "recursive"])
    def test_self_reference(self, strategy: str) -> None:
        result = evaluate_grid([["=A1"]], strategy=strategy)
        assert result.values == [[0]]
        assert result.diagnostics[0].kind is ErrorKind.CIRCULAR_REFERENCE

    def test_mutual_cycle_ordered(self) -> None:
        result = evaluate_grid([["=B1+1", "=A1+1"]])
        assert result.values == [[1, 1]]
        assert result.cyclic_cells == {(0, 0), (0, 1)}

    def test_mutual_cycle_recursive_terminates(self) -> None:
        # Each cell sees one full trip round the cycle before the guard trips
        assert recompute([["=B1+1", "=A1+1"]], strategy="recursive") == [[2, 2]]

    def test_self_reference_through_range(self) -> None:
        assert _value([[5], ["=SUM(A1:A2)"]], 1, 0) == 5

    def test_three_cell_cycle(self) -> None:
        assert recompute([["=B1+1", "=C1+1", "=A1+1"]]) == [[1, 1, 1]]

    def test_downstream_of_cycle_reads_settled_values(self) -> None:
        grid = [["=B1+1", "=A1+1", "=A1*10"]]
        assert recompute(grid) == [[1, 1, 10]]

    def test_sibling_cells_unaffected(self) -> None:
        grid = [[5, "=A1+1", "=A1+2", "=B1+C1"]]
        assert recompute(grid) == [[5, 6, 7, 13]]
        assert recompute(grid, strategy="recursive") == [[5, 6, 7, 13]]


class TestErrors:
    @pytest.mark.parametrize(
        "formula",
        ['="; DROP TABLE x; "', "=__proto__", "=import os", "=A1 + a1", "=", "=1+"],
    )
    def test_rejected_expressions_are_zero(self, formula: str) -> None:
        result = evaluate_grid([[1, formula]])
        assert result.values[0][1] == 0
        assert result.diagnostics

    def test_out_of_range_reference_is_zero(self) -> None:
        result = evaluate_grid([["=Z99+1"]])
        assert result.values == [[1]]
        assert result.diagnostics == ()

    def test_zero_row_reference(self) -> None:
        result = evaluate_grid([["=A0+2"]])
        assert result.values == [[2]]
        assert result.diagnostics[0].kind is ErrorKind.INVALID_REFERENCE
        assert result.diagnostics[0].cell_ref == "A1"

    def test_division_by_zero(self) -> None:
        assert _value([[0, "=5/A1"]], 0, 1) == 0

    def test_overflow_is_zero(self) -> None:
        grid = [[1e308, "=A1*10"]]
        result = evaluate_grid(grid)
        assert result.values[0][1] == 0
        assert result.diagnostics[0].kind is ErrorKind.INVALID_EXPRESSION

    def test_error_ratio(self) -> None:
        result = evaluate_grid([["=1", "=bad"]])
        assert result.total_formula_cells == 2
        assert result.error_ratio == 0.5
        assert result.diagnostics_for(0, 1)
        assert not result.diagnostics_for(0, 0)

    def test_fallback_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="gridcalc.calc._evaluator"):
            recompute([["=oops"]])
        assert "Rejected expression" in caplog.text


class TestStrategies:
    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown strategy"):
            GridEvaluator(strategy="parallel")

    def test_implements_protocol(self) -> None:
        assert isinstance(GridEvaluator(), CalcEngine)

    @pytest.mark.parametrize("strategy", ["ordered", "recursive"])
    def test_strategies_agree_on_acyclic_grid(self, strategy: str) -> None:
        grid = [
            [1, 2, "=SUM(A1:B1)", "=C1*2"],
            [3, 4, "=A1+B2", "=AVERAGE(A1:B2)"],
            ["=D1-D2", "=MAX(A1:D2)", "=COUNT(A1:D2)", "=(C2+1)/2"],
        ]
        assert recompute(grid, strategy=strategy) == [
            [1, 2, 3, 6],
            [3, 4, 5, 2.5],
            [3.5, 6, 8, 3],
        ]

    def test_long_chain_ordered(self) -> None:
        grid = [[1]] + [[f"=A{r}+1"] for r in range(1, 3000)]
        values = recompute(grid)
        assert values[-1][0] == 3000

    def test_chain_recursive(self) -> None:
        grid = [[1]] + [[f"=A{r}+1"] for r in range(1, 300)]
        result = evaluate_grid(grid, strategy="recursive")
        assert result.values[-1][0] == 300
        assert result.diagnostics == ()

    def test_long_chain_recursive(self) -> None:
        grid = [[1]] + [[f"=A{r}+1"] for r in range(1, 2500)]
        ev = GridEvaluator(strategy="recursive")
        assert ev.evaluate_cell(grid, 2499, 0) == 2500

    def test_acyclic_grid_skips_component_search(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _components(self: DependencyGraph) -> list:
            raise AssertionError("components() should not run")

        monkeypatch.setattr(DependencyGraph, "components", _components)
        assert recompute([[1, "=A1+1", "=SUM(A1:B1)"]]) == [[1, 2, 3]]

    def test_pure_function(self) -> None:
        grid = [[1, "=A1+1", "=B1*2"], ["=C1", "=A2+A1"]]
        assert recompute(grid) == recompute(grid)


class TestEvaluateCell:
    @pytest.mark.parametrize("strategy", ["ordered", "recursive"])
    def test_formula(self, strategy: str) -> None:
        ev = GridEvaluator(strategy=strategy)
        assert ev.evaluate_cell([[1, 2, "=A1+B1"]], 0, 2) == 3

    def test_literal_and_empty(self) -> None:
        ev = GridEvaluator()
        assert ev.evaluate_cell([["x"]], 0, 0) == "x"
        assert ev.evaluate_cell([["x"]], 5, 5) is None

    def test_recursive_cycle(self) -> None:
        ev = GridEvaluator(strategy="recursive")
        assert ev.evaluate_cell([["=B1+1", "=A1+1"]], 0, 0) == 2
