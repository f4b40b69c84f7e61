import attrs
import pytest

from polytran.errors import ValidationError
from polytran.polymer import PolymerProperties


def test_table_interpolation(polymer):
    assert polymer.viscosity_multiplier(0.5) == pytest.approx(2.0)
    assert polymer.viscosity_multiplier(2.5) == pytest.approx(11.5)
    assert polymer.adsorption(1.5) == pytest.approx(0.0125)
    value, slope = polymer.viscosity_multiplier_with_derivative(1.5)
    assert value == pytest.approx(5.5)
    assert slope == pytest.approx(5.0)


def test_tables_are_constant_outside_range(polymer):
    value, slope = polymer.adsorption_with_derivative(4.0)
    assert value == pytest.approx(0.018)
    assert slope == 0.0


def test_irreversible_adsorption_uses_historical_maximum(polymer):
    assert polymer.effective_adsorption(0.5, 2.0) == pytest.approx(polymer.adsorption(2.0))
    assert polymer.effective_adsorption(2.5, 2.0) == pytest.approx(polymer.adsorption(2.5))
    value, slope = polymer.effective_adsorption_with_derivative(0.5, 2.0)
    assert value == pytest.approx(polymer.adsorption(2.0))
    assert slope == 0.0


def test_reversible_adsorption_follows_concentration(polymer):
    reversible = attrs.evolve(polymer, adsorption_behaviour="desorption")
    assert reversible.effective_adsorption(0.5, 2.0) == pytest.approx(0.005)
    value, slope = reversible.effective_adsorption_with_derivative(0.5, 2.0)
    assert value == pytest.approx(0.005)
    assert slope == pytest.approx(0.01)


@pytest.mark.parametrize(
    "changes",
    [
        {"viscosity_concentrations": [0.0, 1.0], "viscosity_multipliers": [1.0, 2.0, 3.0]},
        {"viscosity_concentrations": [0.0], "viscosity_multipliers": [1.0]},
        {"adsorption_concentrations": [0.0, 2.0, 1.0, 3.0]},
        {"viscosity_multipliers": [0.0, 3.0, 8.0, 15.0]},
        {"adsorption_concentrations": [-1.0, 1.0, 2.0, 3.0]},
    ],
)
def test_invalid_tables_are_rejected(polymer, changes):
    with pytest.raises(ValidationError):
        attrs.evolve(polymer, **changes)


@pytest.mark.parametrize(
    "changes",
    [{"omega": 1.5}, {"dps": 1.0}, {"c_max_limit": 0.0}, {"adsorption_behaviour": "sometimes"}],
)
def test_invalid_scalars_are_rejected(polymer, changes):
    with pytest.raises(ValueError):
        attrs.evolve(polymer, **changes)


def test_construction_from_lists():
    polymer = PolymerProperties(
        c_max_limit=1.0,
        omega=1.0,
        rhor=0.0,
        dps=0.0,
        viscosity_concentrations=[0, 1],
        viscosity_multipliers=[1, 2],
        adsorption_concentrations=[0, 1],
        adsorption_values=[0, 0],
    )
    assert polymer.viscosity_concentrations.dtype.kind == "f"
    assert polymer.viscosity_multiplier(1.0) == 2.0
