"""Upstream to downstream ordering of cells from a flux field."""

import heapq
import typing

import numpy as np
from scipy.sparse import csr_array  # type: ignore[import-untyped]
from scipy.sparse.csgraph import connected_components  # type: ignore[import-untyped]

from polytran.errors import ValidationError
from polytran.mesh import UnstructuredMesh
from polytran.types import FloatArray, IndexArray

__all__ = ["compute_transport_sequence", "build_flux_graph"]


def build_flux_graph(
    mesh: UnstructuredMesh, darcyflux: FloatArray
) -> csr_array:
    """
    Directed upstream to downstream cell graph.

    There is an edge a -> b for every interior face with flux from a to b.
    Faces with zero flux add no edge.

    :param mesh: Mesh topology.
    :param darcyflux: Total darcy flux per face.
    :return: (number_of_cells, number_of_cells) sparse adjacency matrix.
    """
    darcyflux = np.asarray(darcyflux, dtype=np.float64)
    if darcyflux.shape != (mesh.number_of_faces,):
        raise ValidationError(
            f"darcyflux must have one entry per face ({mesh.number_of_faces}). Got {darcyflux.shape}"
        )
    face_cells = mesh.face_cells
    interior = np.all(face_cells >= 0, axis=1)
    forward = interior & (darcyflux > 0.0)
    backward = interior & (darcyflux < 0.0)

    upstream = np.concatenate([face_cells[forward, 0], face_cells[backward, 1]])
    downstream = np.concatenate([face_cells[forward, 1], face_cells[backward, 0]])
    n = mesh.number_of_cells
    graph = csr_array(
        (np.ones(upstream.size, dtype=np.int8), (upstream, downstream)), shape=(n, n)
    )
    return graph


def compute_transport_sequence(
    mesh: UnstructuredMesh, darcyflux: FloatArray
) -> typing.List[IndexArray]:
    """
    Order the cells so that every cell comes after all of its upstream
    neighbours, grouping cells that are mutually upstream of each other.

    Groups are the strongly connected components of the flux graph, sorted
    topologically. Among groups that are ready at the same time, the one with
    the smallest cell index goes first.

    :param mesh: Mesh topology.
    :param darcyflux: Total darcy flux per face.
    :return: List of groups, each a sorted array of cell indices. Groups with
        more than one cell have cyclic flux.
    """
    graph = build_flux_graph(mesh, darcyflux)
    n = mesh.number_of_cells
    number_of_groups, labels = connected_components(
        graph, directed=True, connection="strong"
    )

    members: typing.List[typing.List[int]] = [[] for _ in range(number_of_groups)]
    for cell in range(n):
        members[labels[cell]].append(cell)

    coo = graph.tocoo()
    source_groups = labels[coo.row]
    target_groups = labels[coo.col]
    between = source_groups != target_groups
    edges = set(zip(source_groups[between].tolist(), target_groups[between].tolist()))

    successors: typing.List[typing.List[int]] = [[] for _ in range(number_of_groups)]
    indegree = np.zeros(number_of_groups, dtype=np.int64)
    for source_group, target_group in edges:
        successors[source_group].append(target_group)
        indegree[target_group] += 1

    # Kahn's algorithm, keyed on the smallest cell of each group
    ready = [(members[group][0], group) for group in range(number_of_groups) if indegree[group] == 0]
    heapq.heapify(ready)
    sequence = []
    while ready:
        _, group = heapq.heappop(ready)
        sequence.append(np.asarray(members[group], dtype=np.int64))
        for successor in successors[group]:
            indegree[successor] -= 1
            if indegree[successor] == 0:
                heapq.heappush(ready, (members[successor][0], successor))
    return sequence
