import pytest

from polytran.config import Config
from polytran.errors import (
    ConfigurationError,
    MultiCellConvergenceError,
    PolyTranError,
    SolverError,
)


def test_defaults():
    config = Config()
    assert config.method == "bracketing"
    assert config.tolerance == 1e-9
    assert config.max_iterations == 50
    assert config.max_splitting_iterations == 20
    assert config.max_directional_iterations == 20
    assert config.gradient_method == "finite_difference"
    assert config.finite_difference_step == 1e-5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tolerance": 0.0},
        {"max_iterations": 0},
        {"max_splitting_iterations": 0},
        {"max_directional_iterations": 0},
        {"gradient_method": "complex_step"},
        {"finite_difference_step": -1e-5},
    ],
)
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs)


def test_unknown_method_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="newton"):
        Config(method="newton")


def test_loose_tolerance_and_large_iteration_caps_are_accepted():
    config = Config(tolerance=0.1, max_iterations=1000)
    assert config.tolerance == 0.1
    assert config.max_iterations == 1000


def test_config_is_frozen():
    config = Config()
    with pytest.raises(AttributeError):
        config.tolerance = 1e-3


def test_multi_cell_error_message():
    error = MultiCellConvergenceError(1e-3, 2e-5, 50, cells=[4, 7])
    assert isinstance(error, SolverError)
    assert isinstance(error, PolyTranError)
    assert "50 iterations" in str(error)
    assert "1.000e-03" in str(error)
    assert error.cells == [4, 7]
