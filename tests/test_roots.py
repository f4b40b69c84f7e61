import logging
import math

import pytest

from polytran.errors import RootFindingError, ValidationError
from polytran.roots import modified_regula_falsi, regula_falsi_step


def test_finds_cube_root():
    result = modified_regula_falsi(lambda x: x**3 - 2.0, 0.0, 2.0, 100, 1e-12)
    assert result.converged
    assert result.root == pytest.approx(2.0 ** (1.0 / 3.0), abs=1e-10)
    assert result.iterations > 0


def test_flat_then_steep_function_converges():
    # Plain regula falsi stalls on functions like this one
    result = modified_regula_falsi(lambda x: math.exp(10.0 * x) - 2.0, 0.0, 3.0, 100, 1e-12)
    assert result.converged
    assert result.root == pytest.approx(math.log(2.0) / 10.0, abs=1e-10)


def test_root_at_end_point_returns_immediately():
    calls = []

    def func(x):
        calls.append(x)
        return x

    result = modified_regula_falsi(func, 0.0, 1.0, 10, 1e-12)
    assert result.root == 0.0
    assert result.iterations == 0
    assert calls == [0.0]


def test_unbracketed_interval_raises():
    with pytest.raises(RootFindingError):
        modified_regula_falsi(lambda x: x * x + 1.0, -1.0, 2.0, 10, 1e-12)


def test_unbracketed_interval_warns_and_returns_best_end(caplog):
    with caplog.at_level(logging.WARNING, logger="polytran.roots"):
        result = modified_regula_falsi(
            lambda x: x + 1.0, 1.0, 2.0, 10, 1e-12, on_error="warn"
        )
    assert not result.converged
    assert result.root == 1.0
    assert "not bracketed" in caplog.text


def test_ignore_policy_is_silent(caplog):
    with caplog.at_level(logging.WARNING, logger="polytran.roots"):
        result = modified_regula_falsi(
            lambda x: 2.0 - x, 3.0, 4.0, 10, 1e-12, on_error="ignore"
        )
    assert not result.converged
    assert result.root == 3.0
    assert caplog.text == ""


def test_iteration_cap_raises():
    with pytest.raises(RootFindingError):
        modified_regula_falsi(lambda x: math.exp(x) - 2.0, 0.0, 5.0, 1, 1e-15)


def test_iteration_cap_with_ignore_returns_bracket_midpoint():
    result = modified_regula_falsi(
        lambda x: math.exp(x) - 2.0, 0.0, 5.0, 2, 1e-15, on_error="ignore"
    )
    assert not result.converged
    assert result.iterations == 2
    assert 0.0 < result.root < 5.0


def test_unknown_policy_is_rejected():
    with pytest.raises(ValidationError):
        modified_regula_falsi(lambda x: x, -1.0, 1.0, 10, 1e-12, on_error="explode")


@pytest.mark.parametrize(
    "a, b, fa, fb, expected",
    [
        (0.0, 1.0, -1.0, 1.0, 0.5),
        (0.0, 2.0, -1.0, 3.0, 0.5),
        (0.0, 1.0, 1.0, 1.0, 0.5),
    ],
)
def test_regula_falsi_step(a, b, fa, fb, expected):
    assert regula_falsi_step(a, b, fa, fb) == pytest.approx(expected)
