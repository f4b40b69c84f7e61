import numpy as np
import pytest

from polytran.closures import PolymerFluidClosures
from polytran.config import Config
from polytran.mesh import EXTERIOR, UnstructuredMesh
from polytran.polymer import PolymerProperties
from polytran.relperm import BrooksCoreyTwoPhaseRelPermModel
from polytran.transport import TransportModelPolymer

WATER_VISCOSITY = 1.0
OIL_VISCOSITY = 2.0


def line_mesh(number_of_cells: int, porosity: float = 0.3) -> UnstructuredMesh:
    """Cells 0..n-1 in a row, with boundary faces at both ends."""
    face_cells = [(EXTERIOR, 0)]
    face_cells += [(i, i + 1) for i in range(number_of_cells - 1)]
    face_cells += [(number_of_cells - 1, EXTERIOR)]
    return UnstructuredMesh.from_face_cells(
        face_cells, np.ones(number_of_cells), porosity
    )


def line_flux(number_of_cells: int, rate: float):
    """Darcy flux and sources for injection in cell 0 and production in the last cell."""
    darcyflux = np.concatenate([[0.0], np.full(number_of_cells - 1, rate), [0.0]])
    source = np.zeros(number_of_cells)
    source[0] = rate
    source[-1] = -rate
    return darcyflux, source


def make_model(mesh, relperm, polymer, **config_kwargs) -> TransportModelPolymer:
    return TransportModelPolymer(
        mesh,
        relperm,
        (WATER_VISCOSITY, OIL_VISCOSITY),
        polymer,
        config=Config(**config_kwargs),
    )


@pytest.fixture
def relperm() -> BrooksCoreyTwoPhaseRelPermModel:
    return BrooksCoreyTwoPhaseRelPermModel(
        irreducible_water_saturation=0.1,
        residual_oil_saturation=0.1,
        water_exponent=2.0,
        oil_exponent=2.0,
    )


@pytest.fixture
def polymer() -> PolymerProperties:
    return PolymerProperties(
        c_max_limit=3.0,
        omega=0.7,
        rhor=1.0,
        dps=0.05,
        viscosity_concentrations=[0.0, 1.0, 2.0, 3.0],
        viscosity_multipliers=[1.0, 3.0, 8.0, 15.0],
        adsorption_concentrations=[0.0, 1.0, 2.0, 3.0],
        adsorption_values=[0.0, 0.01, 0.015, 0.018],
    )


@pytest.fixture
def closures(polymer, relperm) -> PolymerFluidClosures:
    return PolymerFluidClosures(
        polymer=polymer,
        relperm=relperm,
        water_viscosity=WATER_VISCOSITY,
        oil_viscosity=OIL_VISCOSITY,
    )


@pytest.fixture
def single_cell_mesh() -> UnstructuredMesh:
    return UnstructuredMesh.from_face_cells(
        np.empty((0, 2), dtype=np.int64), [1.0], 0.3
    )


@pytest.fixture
def cycle_mesh() -> UnstructuredMesh:
    """Two cells connected by two faces, so that flux can circulate between them."""
    return UnstructuredMesh.from_face_cells([(0, 1), (0, 1)], [1.0, 1.0], 0.3)


@pytest.fixture
def cycle_flux():
    """Flux q + Q from cell 0 to 1 on one face and q back on the other."""
    q, Q = 0.5, 1.0
    darcyflux = np.array([q + Q, -q])
    source = np.array([Q, -Q])
    return darcyflux, source
