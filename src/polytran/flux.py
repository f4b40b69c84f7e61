"""Upwind flux budget of a single cell."""

import typing

import attrs
import numba

from polytran.mesh import UnstructuredMesh
from polytran.types import FloatArray, IndexArray

__all__ = ["CellFluxBudget", "compute_cell_flux_budget"]


@attrs.frozen(slots=True)
class CellFluxBudget:
    """
    Fluxes in and out of one cell over a time step, with the cell's state at
    the start of the step.

    Inflows are negative and outflows positive, so `influx <= 0 <= outflux`.
    """

    cell: int
    """Cell index."""
    s0: float
    """Water saturation at the start of the step."""
    c0: float
    """Polymer concentration at the start of the step."""
    cmax0: float
    """Historical maximum polymer concentration at the start of the step."""
    influx: float
    """Water inflow, upwinded with the neighbours' fractional flow. Non-positive."""
    influx_polymer: float
    """Polymer inflow. Non-positive."""
    outflux: float
    """Total outflow. Non-negative."""
    dtpv: float
    """Time step size divided by the cell pore volume."""
    porosity: float
    """Cell porosity."""


@numba.njit(cache=True)
def _accumulate_face_fluxes(
    cell: int,
    cell_facepos: IndexArray,
    cell_faces: IndexArray,
    face_cells: IndexArray,
    darcyflux: FloatArray,
    fractional_flow: FloatArray,
    mc: FloatArray,
) -> typing.Tuple[float, float, float]:
    influx = 0.0
    influx_polymer = 0.0
    outflux = 0.0
    for i in range(cell_facepos[cell], cell_facepos[cell + 1]):
        face = cell_faces[i]
        if face_cells[face, 0] == cell:
            flux = darcyflux[face]
            other = face_cells[face, 1]
        else:
            flux = -darcyflux[face]
            other = face_cells[face, 0]
        # Boundary faces are accounted for through the source term.
        if other < 0:
            continue
        if flux < 0.0:
            influx += flux * fractional_flow[other]
            influx_polymer += flux * fractional_flow[other] * mc[other]
        else:
            outflux += flux
    return influx, influx_polymer, outflux


def compute_cell_flux_budget(
    cell: int,
    mesh: UnstructuredMesh,
    darcyflux: FloatArray,
    source: FloatArray,
    dt: float,
    inflow_mc: float,
    saturation: FloatArray,
    concentration: FloatArray,
    cmax: FloatArray,
    fractional_flow: FloatArray,
    mc: FloatArray,
) -> CellFluxBudget:
    """
    Compute the upwind flux budget of `cell` from the current face fluxes
    and the neighbours' cached fractional flow and `mc`.

    External sources are injected with fractional flow 1 and the inflow
    polymer transport factor. Sinks only add to the outflux.

    :param cell: Cell index.
    :param mesh: Mesh topology.
    :param darcyflux: Total darcy flux per face.
    :param source: Source term per cell, positive for injection.
    :param dt: Time step size.
    :param inflow_mc: Polymer transport factor of the injected water.
    :param saturation: Water saturation per cell, read at `cell`.
    :param concentration: Polymer concentration per cell, read at `cell`.
    :param cmax: Historical maximum concentration per cell, read at `cell`.
    :param fractional_flow: Cached fractional flow per cell.
    :param mc: Cached polymer transport factor per cell.
    :return: `CellFluxBudget`
    """
    influx, influx_polymer, outflux = _accumulate_face_fluxes(
        cell,
        mesh.cell_facepos,
        mesh.cell_faces,
        mesh.face_cells,
        darcyflux,
        fractional_flow,
        mc,
    )
    dflux = -float(source[cell])
    if dflux < 0.0:
        influx += dflux
        influx_polymer += dflux * inflow_mc
    else:
        outflux += dflux

    return CellFluxBudget(
        cell=cell,
        s0=float(saturation[cell]),
        c0=float(concentration[cell]),
        cmax0=float(cmax[cell]),
        influx=influx,
        influx_polymer=influx_polymer,
        outflux=outflux,
        dtpv=dt / float(mesh.pore_volume[cell]),
        porosity=float(mesh.porosity[cell]),
    )
