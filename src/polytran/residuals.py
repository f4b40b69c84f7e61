"""
Residual equations of the implicit upwind polymer transport scheme.

For a cell with flux budget `b`, the new water saturation `s` and polymer
concentration `c` must satisfy

    r_s(s, c) = s - s0 + dtpv * (outflux * f(s, c) + influx) = 0
    r_c(s, c) = (s - dps) * c - (s0 - dps) * c0
                + rhor * (1 - phi) / phi * (ads(c) - ads(c0))
                + dtpv * (outflux * f(s, c) * mc(c) + influx_polymer) = 0

where `ads` is the effective adsorption given the historical maximum
concentration `cmax0`.
"""

import typing

import attrs
import numpy as np
import numpy.typing as npt

from polytran.closures import PolymerFluidClosures
from polytran.errors import SolverError, ValidationError
from polytran.flux import CellFluxBudget
from polytran.roots import modified_regula_falsi
from polytran.types import GradientMethod, Point, ResidualEquation

__all__ = [
    "saturation_residual",
    "concentration_residual",
    "residual_norm",
    "SaturationResidual",
    "ConcentrationResidual",
    "CoupledResidual",
    "SearchPath",
    "DirectionalResidual",
]


def _rock_factor(budget: CellFluxBudget, closures: PolymerFluidClosures) -> float:
    """Adsorbed mass per unit pore volume and unit adsorption."""
    return closures.polymer.rhor * (1.0 - budget.porosity) / budget.porosity


def saturation_residual(
    budget: CellFluxBudget,
    closures: PolymerFluidClosures,
    saturation: float,
    concentration: float,
) -> float:
    """Water mass balance residual r_s(s, c) of the cell."""
    fractional_flow = closures.fractional_flow(saturation, concentration, budget.cell)
    return (
        saturation
        - budget.s0
        + budget.dtpv * (budget.outflux * fractional_flow + budget.influx)
    )


def concentration_residual(
    budget: CellFluxBudget,
    closures: PolymerFluidClosures,
    saturation: float,
    concentration: float,
) -> float:
    """Polymer mass balance residual r_c(s, c) of the cell."""
    polymer = closures.polymer
    fractional_flow = closures.fractional_flow(saturation, concentration, budget.cell)
    mc = closures.compute_mc(concentration)
    adsorption = polymer.effective_adsorption(concentration, budget.cmax0)
    adsorption0 = polymer.effective_adsorption(budget.c0, budget.cmax0)
    return (
        (saturation - polymer.dps) * concentration
        - (budget.s0 - polymer.dps) * budget.c0
        + _rock_factor(budget, closures) * (adsorption - adsorption0)
        + budget.dtpv * (budget.outflux * fractional_flow * mc + budget.influx_polymer)
    )


def residual_norm(residual: typing.Sequence[float]) -> float:
    """Maximum norm of a residual pair."""
    return max(abs(residual[0]), abs(residual[1]))


@attrs.frozen(slots=True)
class SaturationResidual:
    """r_s as a function of saturation, for a fixed concentration."""

    budget: CellFluxBudget
    closures: PolymerFluidClosures
    concentration: float

    def __call__(self, saturation: float) -> float:
        return saturation_residual(
            self.budget, self.closures, saturation, self.concentration
        )


@attrs.frozen(slots=True)
class ConcentrationResidual:
    """
    r_c as a function of concentration alone.

    For each concentration, the saturation is first found by solving
    r_s(s; c) = 0 on [smin, smax], so roots of this function are solutions of
    the coupled cell equations.
    """

    budget: CellFluxBudget
    closures: PolymerFluidClosures
    smin: float
    smax: float
    max_iterations: int
    tolerance: float

    def evaluate(self, concentration: float) -> typing.Tuple[float, float]:
        """
        :param concentration: Polymer concentration.
        :return: (r_c, s) where `s` solves r_s(s; c) = 0.
        """
        result = modified_regula_falsi(
            SaturationResidual(self.budget, self.closures, concentration),
            self.smin,
            self.smax,
            self.max_iterations,
            self.tolerance,
            on_error="raise",
        )
        saturation = result.root
        return (
            concentration_residual(self.budget, self.closures, saturation, concentration),
            saturation,
        )

    def __call__(self, concentration: float) -> float:
        return self.evaluate(concentration)[0]


@attrs.frozen
class CoupledResidual:
    """
    The pair (r_s, r_c) of a cell as a function of x = (s, c), with gradients
    for the line searches of the splitting method.
    """

    budget: CellFluxBudget
    closures: PolymerFluidClosures
    finite_difference_step: float = 1e-5
    """Forward difference step used by the 'finite_difference' gradient method."""

    def compute_residual(self, x: typing.Sequence[float]) -> npt.NDArray[np.float64]:
        """:return: array [r_s, r_c] at x = (s, c)."""
        saturation, concentration = x[0], x[1]
        return np.array(
            [
                saturation_residual(self.budget, self.closures, saturation, concentration),
                concentration_residual(
                    self.budget, self.closures, saturation, concentration
                ),
            ]
        )

    def _finite_difference_gradient(
        self, x: typing.Sequence[float], index: int
    ) -> typing.Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        eps = self.finite_difference_step
        residual = self.compute_residual(x)
        residual_ds = self.compute_residual((x[0] + eps, x[1]))
        residual_dc = self.compute_residual((x[0], x[1] + eps))
        gradient = np.array(
            [
                (residual_ds[index] - residual[index]) / eps,
                (residual_dc[index] - residual[index]) / eps,
            ]
        )
        return residual, gradient

    def _analytic_derivatives(
        self, x: typing.Sequence[float]
    ) -> typing.Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        budget = self.budget
        closures = self.closures
        polymer = closures.polymer
        saturation, concentration = x[0], x[1]

        fractional_flow, (df_ds, df_dc) = closures.fractional_flow_with_derivatives(
            saturation, concentration, budget.cell
        )
        mc, dmc_dc = closures.compute_mc_with_derivative(concentration)
        adsorption, dadsorption_dc = polymer.effective_adsorption_with_derivative(
            concentration, budget.cmax0
        )
        adsorption0 = polymer.effective_adsorption(budget.c0, budget.cmax0)
        rock_factor = _rock_factor(budget, closures)
        transport = budget.dtpv * budget.outflux

        residual = np.array(
            [
                saturation
                - budget.s0
                + budget.dtpv * (budget.outflux * fractional_flow + budget.influx),
                (saturation - polymer.dps) * concentration
                - (budget.s0 - polymer.dps) * budget.c0
                + rock_factor * (adsorption - adsorption0)
                + budget.dtpv
                * (budget.outflux * fractional_flow * mc + budget.influx_polymer),
            ]
        )
        jacobian = np.array(
            [
                [1.0 + transport * df_ds, transport * df_dc],
                [
                    concentration + transport * df_ds * mc,
                    saturation
                    - polymer.dps
                    + rock_factor * dadsorption_dc
                    + transport * (df_dc * mc + fractional_flow * dmc_dc),
                ],
            ]
        )
        return residual, jacobian

    def compute_gradient(
        self,
        x: typing.Sequence[float],
        equation: ResidualEquation,
        method: GradientMethod = "finite_difference",
    ) -> typing.Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Residual pair and the gradient of one of the two equations.

        :param x: Point (s, c).
        :param equation: Equation to differentiate ('saturation', 'concentration').
        :param method: 'finite_difference' (forward differences) or 'analytic'.
        :return: ([r_s, r_c], [dr/ds, dr/dc]) for the selected equation.
        """
        if equation not in ("saturation", "concentration"):
            raise ValidationError(f"Unknown residual equation {equation!r}")
        index = 0 if equation == "saturation" else 1
        if method == "finite_difference":
            return self._finite_difference_gradient(x, index)
        if method == "analytic":
            residual, jacobian = self._analytic_derivatives(x)
            return residual, jacobian[index].copy()
        raise ValidationError(f"Unknown gradient method {method!r}")

    def compute_jacobian(
        self, x: typing.Sequence[float], method: GradientMethod = "analytic"
    ) -> npt.NDArray[np.float64]:
        """
        :return: 2x2 Jacobian [[dr_s/ds, dr_s/dc], [dr_c/ds, dr_c/dc]] at x.
        """
        if method == "analytic":
            return self._analytic_derivatives(x)[1]
        _, saturation_gradient = self.compute_gradient(x, "saturation", method)
        _, concentration_gradient = self.compute_gradient(x, "concentration", method)
        return np.vstack([saturation_gradient, concentration_gradient])


@attrs.frozen(slots=True)
class SearchPath:
    """
    Piecewise linear curve in the (s, c) plane, parametrised by t in [0, t_max].

    The curve starts at `x` along `direction` until it leaves the box at
    `x_out` (t = t_out), then runs straight to `end_point` (t = t_max = t_out + 1).
    """

    x: Point
    direction: Point
    end_point: Point
    x_out: Point
    t_out: float
    t_max: float

    @classmethod
    def through_box(
        cls,
        x: Point,
        direction: Point,
        end_point: Point,
        x_min: Point,
        x_max: Point,
    ) -> "SearchPath":
        """
        Build the path from `x` along `direction` to the edge of the box
        [x_min, x_max], then on to `end_point`.

        The direction is reversed if it points away from `end_point`.
        """
        dx, dy = direction
        if (end_point[0] - x[0]) * dx + (end_point[1] - x[1]) * dy < 0.0:
            dx, dy = -dx, -dy

        exits = []
        for component, position, lower, upper in (
            (dx, x[0], x_min[0], x_max[0]),
            (dy, x[1], x_min[1], x_max[1]),
        ):
            if component > 0.0:
                exits.append((upper - position) / component)
            elif component < 0.0:
                exits.append((lower - position) / component)
        t_out = max(min(exits), 0.0) if exits else 0.0

        x_out = (x[0] + t_out * dx, x[1] + t_out * dy)
        return cls(
            x=(x[0], x[1]),
            direction=(dx, dy),
            end_point=(end_point[0], end_point[1]),
            x_out=x_out,
            t_out=t_out,
            t_max=t_out + 1.0,
        )

    def point_at(self, t: float) -> Point:
        """Point on the path at parameter `t`."""
        if t <= self.t_out:
            return (
                self.x[0] + t * self.direction[0],
                self.x[1] + t * self.direction[1],
            )
        weight = (t - self.t_out) / (self.t_max - self.t_out)
        return (
            (1.0 - weight) * self.x_out[0] + weight * self.end_point[0],
            (1.0 - weight) * self.x_out[1] + weight * self.end_point[1],
        )


@attrs.frozen
class DirectionalResidual:
    """
    One of the cell residuals restricted to a `SearchPath`, as a function of
    the path parameter t.
    """

    budget: CellFluxBudget
    closures: PolymerFluidClosures
    equation: ResidualEquation = attrs.field(
        validator=attrs.validators.in_(("saturation", "concentration"))
    )
    """Equation evaluated along the path ('saturation', 'concentration')."""
    path: typing.Optional[SearchPath] = None

    def setup(
        self,
        x: Point,
        direction: Point,
        end_point: Point,
        x_min: Point,
        x_max: Point,
    ) -> "DirectionalResidual":
        """
        Return a copy of this residual along the path from `x` in `direction`
        to the edge of the box [x_min, x_max], then to `end_point`.
        """
        return attrs.evolve(
            self,
            path=SearchPath.through_box(x, direction, end_point, x_min, x_max),
        )

    def __call__(self, t: float) -> float:
        if self.path is None:
            raise SolverError("Directional residual evaluated before `setup`")
        saturation, concentration = self.path.point_at(t)
        if self.equation == "saturation":
            return saturation_residual(
                self.budget, self.closures, saturation, concentration
            )
        return concentration_residual(self.budget, self.closures, saturation, concentration)
