"""
Implicit upwind transport of water saturation and polymer concentration.

Cells are solved one at a time in upstream to downstream order, so that the
inflow of each cell is known when it is solved. Groups of cells with cyclic
flux between them are solved together by fixed-point iteration.
"""

import logging
import typing

import attrs
import numpy as np
import numpy.typing as npt

from polytran.closures import PolymerFluidClosures
from polytran.config import Config
from polytran.errors import (
    ConfigurationError,
    MultiCellConvergenceError,
    SolverError,
    ValidationError,
)
from polytran.flux import CellFluxBudget, compute_cell_flux_budget
from polytran.mesh import UnstructuredMesh
from polytran.ordering import compute_transport_sequence
from polytran.polymer import PolymerProperties
from polytran.strategies import CellSolution, SingleCellStrategy, build_strategy
from polytran.types import FloatArray, RelativePermeabilityModel
from polytran.utils import as_float_array

logger = logging.getLogger(__name__)

__all__ = ["TransportModelPolymer", "TransportStatistics"]


@attrs.frozen
class TransportStatistics:
    """Summary of a transport step."""

    groups: int
    """Number of cell groups solved."""
    multi_cell_groups: int
    """Number of groups with more than one cell (cyclic flux)."""
    multi_cell_iterations: int
    """Total fixed-point sweeps spent on cyclic groups."""
    splitting_fallbacks: int
    """Number of cell solves where splitting fell back to bracketing."""


def _check_state_array(
    name: str, array: typing.Any, size: int
) -> FloatArray:
    if not isinstance(array, np.ndarray) or array.dtype.kind != "f":
        raise ValidationError(f"{name} must be a floating point numpy array, updated in place")
    if array.shape != (size,):
        raise ValidationError(f"{name} must have shape ({size},). Got {array.shape}")
    return array


class TransportModelPolymer:
    """
    Reordering implicit transport solver for water-oil flow with polymer.

    Example:
    ```python
    model = TransportModelPolymer(mesh, relperm, (0.5e-3, 2.0e-3), polymer)
    stats = model.solve(darcyflux, source, dt, inflow_c, saturation, concentration, cmax)
    ```
    """

    def __init__(
        self,
        mesh: UnstructuredMesh,
        relperm: RelativePermeabilityModel,
        viscosities: typing.Sequence[float],
        polymer: PolymerProperties,
        config: typing.Optional[Config] = None,
    ) -> None:
        """
        :param mesh: Mesh topology and pore volumes.
        :param relperm: Water-oil relative permeability model.
        :param viscosities: (water viscosity, oil viscosity).
        :param polymer: Polymer property set.
        :param config: Solver configuration. Defaults to `Config()`.
        """
        viscosities = tuple(viscosities)
        if len(viscosities) != 2:
            raise ConfigurationError(
                f"Polymer transport needs exactly two phase viscosities (water, oil). Got {len(viscosities)}"
            )
        if not isinstance(relperm, RelativePermeabilityModel):
            raise ConfigurationError(
                f"{type(relperm).__name__} does not implement the relative permeability model protocol"
            )

        self.mesh = mesh
        self.polymer = polymer
        self.config = config if config is not None else Config()
        self.closures = PolymerFluidClosures(
            polymer=polymer,
            relperm=relperm,
            water_viscosity=float(viscosities[0]),
            oil_viscosity=float(viscosities[1]),
        )
        self.strategy: SingleCellStrategy = build_strategy(self.config)

        n = mesh.number_of_cells
        smin, smax = relperm.saturation_range()
        self.smin = np.broadcast_to(as_float_array(smin), (n,)).copy()
        self.smax = np.broadcast_to(as_float_array(smax), (n,)).copy()
        if np.any(self.smin >= self.smax):
            raise ValidationError("Minimum water saturation must be below maximum saturation")

        self._fractional_flow = np.full(n, -1.0)
        self._mc = np.full(n, -1.0)

        self._darcyflux: typing.Optional[FloatArray] = None
        self._source: typing.Optional[FloatArray] = None
        self._dt = 0.0
        self._inflow_mc = 0.0
        self._saturation: typing.Optional[FloatArray] = None
        self._concentration: typing.Optional[FloatArray] = None
        self._cmax: typing.Optional[FloatArray] = None
        self._splitting_fallbacks = 0

    @property
    def fractional_flow(self) -> FloatArray:
        """Cached water fractional flow per cell. -1 where not yet computed."""
        view = self._fractional_flow.view()
        view.flags.writeable = False
        return view

    @property
    def mc(self) -> FloatArray:
        """Cached polymer transport factor per cell. -1 where not yet computed."""
        view = self._mc.view()
        view.flags.writeable = False
        return view

    def begin_step(
        self,
        darcyflux: npt.ArrayLike,
        source: npt.ArrayLike,
        dt: float,
        inflow_c: float,
        saturation: FloatArray,
        concentration: FloatArray,
        cmax: FloatArray,
    ) -> None:
        """
        Attach the inputs of a time step and refresh the cell caches.

        `saturation`, `concentration` and `cmax` are updated in place by the
        subsequent cell solves.

        :param darcyflux: Total darcy flux per face.
        :param source: Source term per cell, positive for injection.
        :param dt: Time step size.
        :param inflow_c: Polymer concentration of the injected water.
        :param saturation: Water saturation per cell.
        :param concentration: Polymer concentration per cell.
        :param cmax: Historical maximum polymer concentration per cell.
        """
        mesh = self.mesh
        n = mesh.number_of_cells
        darcyflux = as_float_array(darcyflux)
        source = as_float_array(source)
        if darcyflux.shape != (mesh.number_of_faces,):
            raise ValidationError(
                f"darcyflux must have one entry per face ({mesh.number_of_faces}). Got {darcyflux.shape}"
            )
        if source.shape != (n,):
            raise ValidationError(f"source must have one entry per cell ({n}). Got {source.shape}")
        if not dt > 0.0:
            raise ValidationError(f"Time step size must be positive. Got {dt}")
        if not 0.0 <= inflow_c <= self.polymer.c_max_limit:
            raise ValidationError(
                f"Inflow concentration must be in [0, {self.polymer.c_max_limit}]. Got {inflow_c}"
            )

        self._saturation = _check_state_array("saturation", saturation, n)
        self._concentration = _check_state_array("concentration", concentration, n)
        self._cmax = _check_state_array("cmax", cmax, n)
        self._darcyflux = darcyflux
        self._source = source
        self._dt = float(dt)
        self._inflow_mc = self.closures.compute_mc(float(inflow_c))
        self._splitting_fallbacks = 0
        self.update_cell_caches()

    def end_step(self) -> None:
        """Release the references to the time step inputs."""
        self._darcyflux = None
        self._source = None
        self._saturation = None
        self._concentration = None
        self._cmax = None

    def _require_step(self) -> None:
        if self._saturation is None:
            raise SolverError("No time step in progress. Call `begin_step` first.")

    def update_cell_caches(self, cells: typing.Optional[typing.Iterable[int]] = None) -> None:
        """
        Recompute the cached fractional flow and `mc` of `cells` (all cells
        if None) from the current saturation and concentration.
        """
        self._require_step()
        saturation = self._saturation
        concentration = self._concentration
        closures = self.closures
        if cells is None:
            cells = range(self.mesh.number_of_cells)
        for cell in cells:
            self._fractional_flow[cell] = closures.fractional_flow(
                saturation[cell], concentration[cell], cell
            )
            self._mc[cell] = closures.compute_mc(concentration[cell])

    def cell_flux_budget(self, cell: int) -> CellFluxBudget:
        """Flux budget of `cell` from the current state and caches."""
        self._require_step()
        return compute_cell_flux_budget(
            cell,
            self.mesh,
            self._darcyflux,
            self._source,
            self._dt,
            self._inflow_mc,
            self._saturation,
            self._concentration,
            self._cmax,
            self._fractional_flow,
            self._mc,
        )

    def solve_single_cell(self, cell: int) -> CellSolution:
        """
        Solve the transport equations of one cell, taking the current state of
        the cell as the state at the start of the step.

        Updates saturation, concentration, cmax and the caches of the cell.

        :param cell: Cell index.
        :return: `CellSolution`
        """
        cell = int(cell)
        budget = self.cell_flux_budget(cell)
        solution = self.strategy.solve(
            budget, self.closures, float(self.smin[cell]), float(self.smax[cell])
        )
        if solution.fell_back:
            self._splitting_fallbacks += 1

        self._saturation[cell] = solution.saturation
        self._concentration[cell] = solution.concentration
        self._cmax[cell] = max(self._cmax[cell], solution.concentration)
        self._fractional_flow[cell] = self.closures.fractional_flow(
            solution.saturation, solution.concentration, cell
        )
        self._mc[cell] = self.closures.compute_mc(solution.concentration)
        return solution

    def solve_multi_cell(self, cells: typing.Sequence[int]) -> int:
        """
        Solve a group of cells with cyclic flux between them by repeated sweeps
        of single-cell solves, until the saturation and concentration changes
        over a sweep are below tolerance.

        :param cells: Cells of the group.
        :return: Number of sweeps performed.
        :raises MultiCellConvergenceError: If the sweeps do not settle within
            `Config.max_iterations`.
        """
        self._require_step()
        cells = [int(cell) for cell in cells]
        saturation = self._saturation
        concentration = self._concentration
        cmax = self._cmax
        tolerance = self.config.tolerance
        max_iterations = self.config.max_iterations

        self.update_cell_caches(cells)
        initial_state = {
            cell: (saturation[cell], concentration[cell], cmax[cell]) for cell in cells
        }

        iterations = 0
        while True:
            max_saturation_change = 0.0
            max_concentration_change = 0.0
            for cell in cells:
                old_saturation = saturation[cell]
                old_concentration = concentration[cell]
                saturation[cell], concentration[cell], cmax[cell] = initial_state[cell]
                self.solve_single_cell(cell)
                max_saturation_change = max(
                    max_saturation_change, abs(saturation[cell] - old_saturation)
                )
                max_concentration_change = max(
                    max_concentration_change, abs(concentration[cell] - old_concentration)
                )
            iterations += 1

            if max_saturation_change <= tolerance and max_concentration_change <= tolerance:
                break
            if iterations >= max_iterations:
                raise MultiCellConvergenceError(
                    max_saturation_change=max_saturation_change,
                    max_concentration_change=max_concentration_change,
                    iterations=iterations,
                    cells=cells,
                )

        logger.debug(f"Solved {len(cells)} cell multi-cell problem in {iterations} iterations.")
        return iterations

    def solve(
        self,
        darcyflux: npt.ArrayLike,
        source: npt.ArrayLike,
        dt: float,
        inflow_c: float,
        saturation: FloatArray,
        concentration: FloatArray,
        cmax: FloatArray,
        groups: typing.Optional[typing.Sequence[typing.Sequence[int]]] = None,
    ) -> TransportStatistics:
        """
        Advance saturation and concentration by one time step.

        `saturation`, `concentration` and `cmax` are updated in place.

        :param darcyflux: Total darcy flux per face.
        :param source: Source term per cell, positive for injection.
        :param dt: Time step size.
        :param inflow_c: Polymer concentration of the injected water.
        :param saturation: Water saturation per cell.
        :param concentration: Polymer concentration per cell.
        :param cmax: Historical maximum polymer concentration per cell.
        :param groups: Cell groups in upstream to downstream order. Computed
            from the flux field if not given.
        :return: `TransportStatistics`
        """
        self.begin_step(darcyflux, source, dt, inflow_c, saturation, concentration, cmax)
        try:
            if groups is None:
                groups = compute_transport_sequence(self.mesh, self._darcyflux)

            multi_cell_groups = 0
            multi_cell_iterations = 0
            for group in groups:
                if len(group) == 1:
                    self.solve_single_cell(group[0])
                else:
                    multi_cell_groups += 1
                    multi_cell_iterations += self.solve_multi_cell(group)

            statistics = TransportStatistics(
                groups=len(groups),
                multi_cell_groups=multi_cell_groups,
                multi_cell_iterations=multi_cell_iterations,
                splitting_fallbacks=self._splitting_fallbacks,
            )
        finally:
            self.end_step()

        logger.info(
            f"Transport step of size {dt} solved: {statistics.groups} groups, "
            f"{multi_cell_groups} cyclic ({multi_cell_iterations} sweeps), "
            f"{statistics.splitting_fallbacks} splitting fallbacks."
        )
        return statistics
