import numpy as np
import pytest

from conftest import line_mesh
from polytran.errors import ValidationError
from polytran.mesh import UnstructuredMesh
from polytran.ordering import build_flux_graph, compute_transport_sequence


def _as_lists(groups):
    return [group.tolist() for group in groups]


def test_chain_is_ordered_downstream():
    mesh = line_mesh(4)
    darcyflux = np.array([0.0, 1.0, 1.0, 1.0, 0.0])
    assert _as_lists(compute_transport_sequence(mesh, darcyflux)) == [[0], [1], [2], [3]]


def test_reversed_chain():
    mesh = line_mesh(4)
    darcyflux = np.array([0.0, -1.0, -1.0, -1.0, 0.0])
    assert _as_lists(compute_transport_sequence(mesh, darcyflux)) == [[3], [2], [1], [0]]


def test_cycle_is_grouped(cycle_mesh, cycle_flux):
    darcyflux, _ = cycle_flux
    assert _as_lists(compute_transport_sequence(cycle_mesh, darcyflux)) == [[0, 1]]


def test_cycle_inside_chain():
    mesh = UnstructuredMesh.from_face_cells(
        [(0, 1), (1, 2), (1, 2), (2, 3)], np.ones(4), 0.2
    )
    darcyflux = np.array([1.0, 2.0, -1.0, 1.0])
    assert _as_lists(compute_transport_sequence(mesh, darcyflux)) == [[0], [1, 2], [3]]


def test_independent_cells_are_ordered_by_index():
    mesh = UnstructuredMesh.from_face_cells([(0, 1), (2, 3)], np.ones(4), 0.2)
    darcyflux = np.array([0.0, -1.0])
    assert _as_lists(compute_transport_sequence(mesh, darcyflux)) == [[0], [1], [3], [2]]


def test_every_cell_appears_once():
    mesh = line_mesh(6)
    rng = np.random.default_rng(7)
    darcyflux = rng.normal(size=mesh.number_of_faces)
    groups = compute_transport_sequence(mesh, darcyflux)
    cells = np.sort(np.concatenate(groups))
    np.testing.assert_array_equal(cells, np.arange(6))


def test_graph_skips_boundary_and_zero_flux():
    mesh = line_mesh(3)
    graph = build_flux_graph(mesh, np.array([5.0, 1.0, 0.0, -5.0]))
    assert graph.nnz == 1
    assert graph[0, 1] == 1


def test_flux_length_is_checked():
    with pytest.raises(ValidationError):
        compute_transport_sequence(line_mesh(3), np.zeros(3))
