import attrs

from polytran.errors import ConfigurationError
from polytran.types import GradientMethod, SolverMethod

__all__ = ["Config", "SOLVER_METHODS"]

SOLVER_METHODS = ("bracketing", "splitting")
"""Supported single-cell solution strategies."""


def _validate_method(instance, attribute, value) -> None:
    if value not in SOLVER_METHODS:
        raise ConfigurationError(
            f"Unknown single-cell solution method {value!r}. Expected one of {SOLVER_METHODS}."
        )


@attrs.frozen
class Config:
    """Transport solver configuration and parameters."""

    method: SolverMethod = attrs.field(default="bracketing", validator=_validate_method)
    """Single-cell solution strategy ('bracketing', 'splitting')."""
    tolerance: float = attrs.field(default=1e-9, validator=attrs.validators.gt(0.0))
    """Absolute residual tolerance shared by root-finders and fixed-point loops (default is 1e-9)."""
    max_iterations: int = attrs.field(default=50, validator=attrs.validators.ge(1))
    """
    Maximum number of iterations for the bracketing root-finders and for
    the sweeps over a cyclic group of cells.
    """
    max_splitting_iterations: int = attrs.field(
        default=20, validator=attrs.validators.ge(1)
    )
    """
    Maximum number of alternating line searches in the splitting method
    before the cell is handed over to the bracketing method.
    """
    max_directional_iterations: int = attrs.field(
        default=20, validator=attrs.validators.ge(1)
    )
    """Maximum number of root-finder iterations per directional line search."""
    gradient_method: GradientMethod = attrs.field(
        default="finite_difference",
        validator=attrs.validators.in_(("finite_difference", "analytic")),
    )
    """How residual gradients are computed in the splitting method ('finite_difference', 'analytic')."""
    finite_difference_step: float = attrs.field(
        default=1e-5, validator=attrs.validators.gt(0.0)
    )
    """Forward difference perturbation used when `gradient_method` is 'finite_difference'."""
