import attrs
import numpy as np
import pytest

STEP = 1e-6
SATURATIONS = [0.05, 0.15, 0.42, 0.77, 0.95]
CONCENTRATIONS = [0.0, 0.3, 1.5, 2.6, 3.0]
# Away from table nodes, where the closures are smooth
SMOOTH_SATURATIONS = [0.15, 0.42, 0.77]
SMOOTH_CONCENTRATIONS = [0.3, 1.5, 2.6]


@pytest.mark.parametrize("saturation", SATURATIONS)
@pytest.mark.parametrize("concentration", CONCENTRATIONS)
def test_fractional_flow_is_a_fraction(closures, saturation, concentration):
    fractional_flow = closures.fractional_flow(saturation, concentration, 0)
    assert 0.0 <= fractional_flow <= 1.0


def test_fractional_flow_end_points(closures):
    assert closures.fractional_flow(0.1, 1.0, 0) == 0.0
    assert closures.fractional_flow(0.9, 1.0, 0) == 1.0


def test_polymer_lowers_water_fractional_flow(closures):
    clean = closures.fractional_flow(0.5, 0.0, 0)
    polymer = closures.fractional_flow(0.5, 2.0, 0)
    assert polymer < clean


def test_fractional_flow_without_polymer_matches_plain_mobility_ratio(closures, relperm):
    krw, kro = relperm.relative_permeabilities(0.5, 0)
    expected = (krw / 1.0) / (krw / 1.0 + kro / 2.0)
    assert closures.fractional_flow(0.5, 0.0, 0) == pytest.approx(expected, rel=1e-12)


@pytest.mark.parametrize("saturation", SMOOTH_SATURATIONS)
@pytest.mark.parametrize("concentration", SMOOTH_CONCENTRATIONS)
def test_fractional_flow_derivatives_match_finite_differences(
    closures, saturation, concentration
):
    fractional_flow, (df_ds, df_dc) = closures.fractional_flow_with_derivatives(
        saturation, concentration, 0
    )
    assert fractional_flow == pytest.approx(
        closures.fractional_flow(saturation, concentration, 0), rel=1e-14
    )

    expected_ds = (
        closures.fractional_flow(saturation + STEP, concentration, 0)
        - closures.fractional_flow(saturation - STEP, concentration, 0)
    ) / (2 * STEP)
    expected_dc = (
        closures.fractional_flow(saturation, concentration + STEP, 0)
        - closures.fractional_flow(saturation, concentration - STEP, 0)
    ) / (2 * STEP)
    assert df_ds == pytest.approx(expected_ds, rel=1e-6, abs=1e-9)
    assert df_dc == pytest.approx(expected_dc, rel=1e-6, abs=1e-9)


@pytest.mark.parametrize("concentration", SMOOTH_CONCENTRATIONS)
def test_mc_derivative_matches_finite_differences(closures, concentration):
    mc, dmc_dc = closures.compute_mc_with_derivative(concentration)
    assert mc == pytest.approx(closures.compute_mc(concentration), rel=1e-14)
    expected = (
        closures.compute_mc(concentration + STEP) - closures.compute_mc(concentration - STEP)
    ) / (2 * STEP)
    assert dmc_dc == pytest.approx(expected, rel=1e-6, abs=1e-9)


def test_mc_limits(closures, polymer):
    assert closures.compute_mc(0.0) == 0.0
    # At the maximum concentration the mixture is pure polymer solution
    assert closures.compute_mc(polymer.c_max_limit) == pytest.approx(polymer.c_max_limit)


@pytest.mark.parametrize("omega", [0.0, 0.5, 1.0])
def test_mc_is_increasing(closures, polymer, omega):
    mixed = attrs.evolve(closures, polymer=attrs.evolve(polymer, omega=omega))
    values = [mixed.compute_mc(c) for c in np.linspace(0.0, polymer.c_max_limit, 31)]
    assert np.all(np.diff(values) > 0.0)
