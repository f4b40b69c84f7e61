import typing

import numpy as np
import numpy.typing as npt
from typing_extensions import TypeAlias


__all__ = [
    "FloatArray",
    "IndexArray",
    "FloatOrArray",
    "Point",
    "SolverMethod",
    "GradientMethod",
    "ResidualEquation",
    "ErrorPolicy",
    "AdsorptionBehaviour",
    "ScalarFunction",
    "RelativePermeabilityModel",
    "FullyImplicitSolver",
]

FloatArray: TypeAlias = npt.NDArray[np.floating]
"""1D array of floats, one entry per cell or per face."""
IndexArray: TypeAlias = npt.NDArray[np.integer]
"""Array of cell or face indices."""
FloatOrArray = typing.Union[float, npt.NDArray[np.floating]]

Point: TypeAlias = typing.Tuple[float, float]
"""A point (s, c) in the saturation-concentration plane."""

SolverMethod = typing.Literal["bracketing", "splitting"]
"""
Single-cell solution strategies

- "bracketing": Nested 1D solves, concentration outside and saturation inside
- "splitting": Alternating directional line searches, falling back to bracketing
"""

GradientMethod = typing.Literal["finite_difference", "analytic"]
"""How the coupled residual Jacobian is computed."""

ResidualEquation = typing.Literal["saturation", "concentration"]
"""Which of the two cell residual equations is evaluated."""

ErrorPolicy = typing.Literal["raise", "warn", "ignore"]
"""What a root-finder does when it cannot bracket or converge."""

AdsorptionBehaviour = typing.Literal["no_desorption", "desorption"]
"""Whether adsorbed polymer stays on the rock when the concentration drops."""

ScalarFunction = typing.Callable[[float], float]


@typing.runtime_checkable
class RelativePermeabilityModel(typing.Protocol):
    """
    Protocol for a two-phase (water-oil) relative permeability model.

    Saturations are water saturations. Models may vary per cell, hence the
    `cell` argument, which constant models simply ignore.
    """

    def relative_permeabilities(
        self, water_saturation: float, cell: int
    ) -> typing.Tuple[float, float]:
        """
        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index.
        :return: (krw, kro)
        """
        ...

    def relative_permeabilities_with_derivatives(
        self, water_saturation: float, cell: int
    ) -> typing.Tuple[typing.Tuple[float, float], typing.Tuple[float, float]]:
        """
        :param water_saturation: Water saturation (fraction).
        :param cell: Cell index.
        :return: ((krw, kro), (dkrw/dsw, dkro/dsw))
        """
        ...

    def saturation_range(self) -> typing.Tuple[FloatOrArray, FloatOrArray]:
        """
        :return: Admissible (minimum, maximum) water saturation, scalar or per cell.
        """
        ...


@typing.runtime_checkable
class FullyImplicitSolver(typing.Protocol):
    """
    Contract of the fully implicit pressure/saturation/concentration/well solver.

    Only the step contract is binding. Implementations assemble the whole
    reservoir and well system with automatic differentiation and run a relaxed
    Newton iteration until both the mass-balance and the maximum normalized
    residual criteria are met.
    """

    def step(
        self,
        dt: float,
        reservoir_state: typing.Any,
        well_state: typing.Any,
        polymer_inflow: typing.Sequence[float],
    ) -> int:
        """
        Take a single forward step, modifying the states in place.

        :param dt: Time step size.
        :param reservoir_state: Pressure, flux, saturation and concentration state.
        :param well_state: Well rates and bottom-hole pressures.
        :param polymer_inflow: Polymer inflow concentration per cell.
        :return: Number of linear iterations used.
        """
        ...
