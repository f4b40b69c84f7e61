"""
Single-cell solution strategies.

Both strategies find (s, c) with r_s(s, c) = r_c(s, c) = 0 for one cell,
given its flux budget.
"""

import abc
import logging
import typing
import warnings

import attrs

from polytran.closures import PolymerFluidClosures
from polytran.config import Config
from polytran.errors import ConfigurationError, SplittingFallbackWarning
from polytran.flux import CellFluxBudget
from polytran.residuals import (
    ConcentrationResidual,
    CoupledResidual,
    DirectionalResidual,
    residual_norm,
)
from polytran.roots import modified_regula_falsi
from polytran.types import Point, SolverMethod

logger = logging.getLogger(__name__)

__all__ = [
    "CellSolution",
    "SingleCellStrategy",
    "BracketingStrategy",
    "SplittingStrategy",
    "build_strategy",
]


@attrs.frozen(slots=True)
class CellSolution:
    """New state of a cell and some statistics on how it was found."""

    saturation: float
    """New water saturation."""
    concentration: float
    """New polymer concentration."""
    method: SolverMethod
    """Strategy that produced the solution."""
    iterations: int
    """Number of scalar root-finder iterations spent."""
    directional_searches: int = 0
    """Number of line searches performed by the splitting method."""
    fell_back: bool = False
    """Whether the splitting method gave up and bracketing was used instead."""


class SingleCellStrategy(abc.ABC):
    """Base class for the single-cell solution strategies."""

    method: typing.ClassVar[SolverMethod]

    def __init__(self, config: Config) -> None:
        self.config = config

    @abc.abstractmethod
    def solve(
        self,
        budget: CellFluxBudget,
        closures: PolymerFluidClosures,
        smin: float,
        smax: float,
    ) -> CellSolution:
        """
        Solve the cell equations.

        :param budget: Flux budget of the cell.
        :param closures: Fluid closures.
        :param smin: Minimum admissible water saturation in the cell.
        :param smax: Maximum admissible water saturation in the cell.
        :return: `CellSolution`
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(config={self.config!r})"


class BracketingStrategy(SingleCellStrategy):
    """
    Nested bracketing solves.

    The concentration residual is solved on [0, c_max_limit], and every
    evaluation of it solves the saturation residual on [smin, smax] first.
    """

    method = "bracketing"

    def solve(
        self,
        budget: CellFluxBudget,
        closures: PolymerFluidClosures,
        smin: float,
        smax: float,
    ) -> CellSolution:
        config = self.config
        residual = ConcentrationResidual(
            budget=budget,
            closures=closures,
            smin=smin,
            smax=smax,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
        )
        result = modified_regula_falsi(
            residual,
            0.0,
            closures.polymer.c_max_limit,
            config.max_iterations,
            config.tolerance,
            on_error="raise",
        )
        _, saturation = residual.evaluate(result.root)
        return CellSolution(
            saturation=saturation,
            concentration=result.root,
            method="bracketing",
            iterations=result.iterations,
        )


class SplittingStrategy(SingleCellStrategy):
    """
    Alternating line searches in the (s, c) plane.

    Each search solves one of the two residual equations along a path that
    follows the zero level set of the other equation (the perpendicular of its
    gradient) to the edge of a bounding box, then heads for a box corner where
    the solved residual has the opposite sign. The bounding box shrinks as the
    concentration residual changes sign.

    If the residual norm is still above tolerance after
    `Config.max_splitting_iterations` searches, a `SplittingFallbackWarning`
    is issued and the cell is solved again with the fallback strategy.
    """

    method = "splitting"

    def __init__(
        self, config: Config, fallback: typing.Optional[SingleCellStrategy] = None
    ) -> None:
        super().__init__(config)
        self.fallback = fallback if fallback is not None else BracketingStrategy(config)

    def _search(
        self,
        residual: DirectionalResidual,
        x: Point,
        direction: Point,
        end_point: Point,
        x_min: Point,
        x_max: Point,
        towards_positive: bool,
    ) -> typing.Tuple[Point, int]:
        config = self.config
        residual = residual.setup(x, direction, end_point, x_min, x_max)
        path = residual.path
        t_max = path.t_max
        # Stop at the box edge if the sign already changed there
        residual_out = residual(path.t_out)
        if (towards_positive and residual_out >= 0.0) or (
            not towards_positive and residual_out <= 0.0
        ):
            t_max = path.t_out

        result = modified_regula_falsi(
            residual,
            0.0,
            t_max,
            config.max_directional_iterations,
            config.tolerance,
            on_error="ignore",
        )
        final_residual = residual(result.root)
        if abs(final_residual) > config.tolerance:
            logger.warning(
                f"Directional {residual.equation} search in cell {residual.budget.cell} "
                f"stopped at residual {final_residual:.3e}, above tolerance {config.tolerance:.1e}."
            )
        return path.point_at(result.root), result.iterations

    def solve(
        self,
        budget: CellFluxBudget,
        closures: PolymerFluidClosures,
        smin: float,
        smax: float,
    ) -> CellSolution:
        config = self.config
        tolerance = config.tolerance
        gradient_method = config.gradient_method
        coupled = CoupledResidual(
            budget, closures, finite_difference_step=config.finite_difference_step
        )
        saturation_search = DirectionalResidual(budget, closures, "saturation")
        concentration_search = DirectionalResidual(budget, closures, "concentration")

        x: Point = (budget.s0, budget.c0)
        residual = coupled.compute_residual(x)
        if residual_norm(residual) < tolerance:
            return CellSolution(
                saturation=budget.s0,
                concentration=budget.c0,
                method="splitting",
                iterations=0,
            )

        x_min: Point = (smin, 0.0)
        x_max: Point = (smax, closures.polymer.c_max_limit)
        iterations = 0
        searches = 0

        # Start with the equation that is closest to being satisfied, heading
        # straight for the corner where its residual changes sign.
        if abs(residual[0]) < abs(residual[1]):
            if abs(residual[0]) > tolerance:
                if residual[0] < 0.0:
                    end_point = (x_max[0], x_min[1])
                else:
                    end_point = (x_min[0], x_max[1])
                direction = (end_point[0] - x[0], end_point[1] - x[1])
                x, used = self._search(
                    saturation_search,
                    x,
                    direction,
                    end_point,
                    x_min,
                    x_max,
                    towards_positive=residual[0] < 0.0,
                )
                iterations += used
                searches += 1
            saturation_solved = True
            residual, gradient = coupled.compute_gradient(x, "saturation", gradient_method)
        else:
            if abs(residual[1]) > tolerance:
                end_point = x_max if residual[1] < 0.0 else x_min
                direction = (end_point[0] - x[0], end_point[1] - x[1])
                x, used = self._search(
                    concentration_search,
                    x,
                    direction,
                    end_point,
                    x_min,
                    x_max,
                    towards_positive=residual[1] < 0.0,
                )
                iterations += used
                searches += 1
            saturation_solved = False
            residual, gradient = coupled.compute_gradient(
                x, "concentration", gradient_method
            )

        splitting_iterations = 0
        while (
            residual_norm(residual) > tolerance
            and splitting_iterations < config.max_splitting_iterations
        ):
            if saturation_solved:
                # Follow r_s = 0 while solving r_c
                direction = (-gradient[1], gradient[0])
                if residual[1] < 0.0:
                    if residual[1] < -tolerance:
                        x_min = x
                    end_point = x_max
                else:
                    if residual[1] > tolerance:
                        x_max = x
                    end_point = x_min
                x, used = self._search(
                    concentration_search,
                    x,
                    direction,
                    end_point,
                    x_min,
                    x_max,
                    towards_positive=residual[1] < 0.0,
                )
                saturation_solved = False
                residual, gradient = coupled.compute_gradient(
                    x, "concentration", gradient_method
                )
            else:
                # Follow r_c = 0 while solving r_s
                direction = (gradient[1], -gradient[0])
                if residual[0] < 0.0:
                    end_point = (x_max[0], x_min[1])
                else:
                    end_point = (x_min[0], x_max[1])
                x, used = self._search(
                    saturation_search,
                    x,
                    direction,
                    end_point,
                    x_min,
                    x_max,
                    towards_positive=residual[0] < 0.0,
                )
                saturation_solved = True
                residual, gradient = coupled.compute_gradient(
                    x, "saturation", gradient_method
                )
            iterations += used
            searches += 1
            splitting_iterations += 1

        if residual_norm(residual) > tolerance:
            warnings.warn(
                f"Splitting did not converge in cell {budget.cell} after "
                f"{splitting_iterations} iterations (residual norm {residual_norm(residual):.3e}). "
                "Falling back to bracketing.",
                SplittingFallbackWarning,
                stacklevel=2,
            )
            solution = self.fallback.solve(budget, closures, smin, smax)
            return attrs.evolve(
                solution,
                iterations=solution.iterations + iterations,
                directional_searches=searches,
                fell_back=True,
            )

        return CellSolution(
            saturation=x[0],
            concentration=x[1],
            method="splitting",
            iterations=iterations,
            directional_searches=searches,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(config={self.config!r}, fallback={self.fallback!r})"


def build_strategy(config: Config) -> SingleCellStrategy:
    """
    Create the single-cell strategy selected by `config.method`.

    :raises ConfigurationError: If the method is not supported.
    """
    if config.method == "bracketing":
        return BracketingStrategy(config)
    if config.method == "splitting":
        return SplittingStrategy(config)
    raise ConfigurationError(f"Unknown single-cell solution method {config.method!r}.")
