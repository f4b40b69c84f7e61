import warnings

import attrs
import pytest

from polytran.config import Config
from polytran.errors import ConfigurationError, SplittingFallbackWarning
from polytran.flux import CellFluxBudget
from polytran.residuals import CoupledResidual, residual_norm
from polytran.strategies import (
    BracketingStrategy,
    CellSolution,
    SingleCellStrategy,
    SplittingStrategy,
    build_strategy,
)

SMIN, SMAX = 0.1, 0.9


def injector_budget(c0: float = 0.0) -> CellFluxBudget:
    """A cell receiving polymer solution from a source and passing it on."""
    return CellFluxBudget(
        cell=0,
        s0=0.2,
        c0=c0,
        cmax0=c0,
        influx=-1.0,
        influx_polymer=-1.0 * 0.8,
        outflux=1.0,
        dtpv=0.1,
        porosity=0.3,
    )


def test_build_strategy():
    assert isinstance(build_strategy(Config()), BracketingStrategy)
    splitting = build_strategy(Config(method="splitting"))
    assert isinstance(splitting, SplittingStrategy)
    assert isinstance(splitting.fallback, BracketingStrategy)
    assert isinstance(splitting, SingleCellStrategy)


def test_build_strategy_rejects_unknown_method():
    with attrs.validators.disabled():
        config = Config(method="newton")
    with pytest.raises(ConfigurationError, match="newton"):
        build_strategy(config)


@pytest.mark.parametrize("method", ["bracketing", "splitting"])
@pytest.mark.parametrize("c0", [0.0, 0.5])
def test_solution_satisfies_both_equations(closures, method, c0):
    config = Config(method=method, tolerance=1e-9)
    budget = injector_budget(c0)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", SplittingFallbackWarning)
        solution = build_strategy(config).solve(budget, closures, SMIN, SMAX)

    assert SMIN <= solution.saturation <= SMAX
    assert 0.0 <= solution.concentration <= closures.polymer.c_max_limit
    residual = CoupledResidual(budget, closures).compute_residual(
        (solution.saturation, solution.concentration)
    )
    assert residual_norm(residual) <= 1e-8
    # Water and polymer flow in, so both go up
    assert solution.saturation > budget.s0
    assert solution.concentration > budget.c0


@pytest.mark.parametrize("gradient_method", ["finite_difference", "analytic"])
def test_bracketing_and_splitting_agree(closures, gradient_method):
    budget = injector_budget(0.3)
    bracketing = BracketingStrategy(Config()).solve(budget, closures, SMIN, SMAX)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", SplittingFallbackWarning)
        splitting = SplittingStrategy(
            Config(method="splitting", gradient_method=gradient_method)
        ).solve(budget, closures, SMIN, SMAX)

    assert splitting.saturation == pytest.approx(bracketing.saturation, abs=1e-6)
    assert splitting.concentration == pytest.approx(bracketing.concentration, abs=1e-6)


def test_splitting_leaves_converged_cell_untouched(closures):
    budget = CellFluxBudget(
        cell=0, s0=0.45, c0=1.1, cmax0=1.3, influx=0.0, influx_polymer=0.0,
        outflux=0.0, dtpv=0.1, porosity=0.3,
    )
    solution = SplittingStrategy(Config(method="splitting")).solve(
        budget, closures, SMIN, SMAX
    )
    assert solution == CellSolution(
        saturation=0.45, concentration=1.1, method="splitting", iterations=0
    )
    assert solution.directional_searches == 0


def test_splitting_falls_back_to_bracketing(closures):
    config = Config(method="splitting", max_splitting_iterations=1, max_directional_iterations=1)
    budget = injector_budget(0.3)
    with pytest.warns(SplittingFallbackWarning):
        solution = SplittingStrategy(config).solve(budget, closures, SMIN, SMAX)

    assert solution.fell_back
    assert solution.method == "bracketing"
    expected = BracketingStrategy(config).solve(budget, closures, SMIN, SMAX)
    assert solution.saturation == expected.saturation
    assert solution.concentration == expected.concentration


def test_pure_outflow_keeps_clean_water_clean(closures):
    budget = CellFluxBudget(
        cell=0, s0=0.2, c0=0.0, cmax0=0.0, influx=0.0, influx_polymer=0.0,
        outflux=1.0, dtpv=0.1, porosity=0.3,
    )
    for method in ("bracketing", "splitting"):
        solution = build_strategy(Config(method=method)).solve(budget, closures, SMIN, SMAX)
        assert solution.concentration == 0.0
        assert SMIN <= solution.saturation < budget.s0
