"""Unstructured finite-volume mesh topology with per-cell pore volumes."""

import typing

import attrs
import numpy as np
import numpy.typing as npt

from polytran.errors import ValidationError
from polytran.types import FloatArray, IndexArray
from polytran.utils import as_float_array

__all__ = ["UnstructuredMesh", "EXTERIOR"]

EXTERIOR = -1
"""Sentinel used in `face_cells` for the outside of the domain."""


def _as_index_array(value: typing.Any) -> IndexArray:
    return np.ascontiguousarray(np.asarray(value, dtype=np.int64))


@attrs.frozen
class UnstructuredMesh:
    """
    Cell-face topology of an unstructured mesh.

    Faces connect at most two cells. The darcy flux on face `f` is positive
    when flowing from `face_cells[f, 0]` to `face_cells[f, 1]`. Boundary faces
    carry `EXTERIOR` (-1) on the outside.

    The faces of cell `i` are `cell_faces[cell_facepos[i]:cell_facepos[i + 1]]`.
    """

    number_of_cells: int = attrs.field(converter=int, validator=attrs.validators.ge(1))
    """Number of cells."""
    face_cells: IndexArray = attrs.field(converter=_as_index_array)
    """(number_of_faces, 2) array of the cells on either side of each face."""
    cell_facepos: IndexArray = attrs.field(converter=_as_index_array)
    """Offsets into `cell_faces`, of length number_of_cells + 1."""
    cell_faces: IndexArray = attrs.field(converter=_as_index_array)
    """Concatenated face indices of all cells."""
    pore_volume: FloatArray = attrs.field(converter=as_float_array)
    """Pore volume of each cell."""
    porosity: FloatArray = attrs.field(converter=as_float_array)
    """Porosity of each cell."""

    def __attrs_post_init__(self) -> None:
        n = self.number_of_cells
        face_cells = self.face_cells
        if face_cells.ndim != 2 or face_cells.shape[1] != 2:
            raise ValidationError(
                f"face_cells must have shape (number_of_faces, 2). Got {face_cells.shape}"
            )
        if np.any((face_cells < EXTERIOR) | (face_cells >= n)):
            raise ValidationError("face_cells contains out of range cell indices")
        if np.any(np.all(face_cells == EXTERIOR, axis=1)):
            raise ValidationError("A face must have at least one cell")
        if np.any((face_cells[:, 0] == face_cells[:, 1])):
            raise ValidationError("A face cannot connect a cell to itself")

        if self.cell_facepos.shape != (n + 1,):
            raise ValidationError(
                f"cell_facepos must have length {n + 1}. Got {self.cell_facepos.shape}"
            )
        if self.cell_facepos[0] != 0 or np.any(np.diff(self.cell_facepos) < 0):
            raise ValidationError("cell_facepos must start at 0 and be non-decreasing")
        if self.cell_facepos[-1] != len(self.cell_faces):
            raise ValidationError("cell_facepos does not match the length of cell_faces")
        if np.any((self.cell_faces < 0) | (self.cell_faces >= self.number_of_faces)):
            raise ValidationError("cell_faces contains out of range face indices")

        if self.pore_volume.shape != (n,):
            raise ValidationError(
                f"pore_volume must have one entry per cell. Got {self.pore_volume.shape}"
            )
        if self.porosity.shape != (n,):
            raise ValidationError(
                f"porosity must have one entry per cell. Got {self.porosity.shape}"
            )
        if np.any(self.pore_volume <= 0):
            raise ValidationError("Pore volumes must be positive")
        if np.any((self.porosity <= 0) | (self.porosity > 1)):
            raise ValidationError("Porosity must be in (0, 1]")

    @property
    def number_of_faces(self) -> int:
        return int(self.face_cells.shape[0])

    def faces_of(self, cell: int) -> IndexArray:
        """Faces incident to `cell`."""
        return self.cell_faces[self.cell_facepos[cell] : self.cell_facepos[cell + 1]]

    @classmethod
    def from_face_cells(
        cls,
        face_cells: npt.ArrayLike,
        pore_volume: npt.ArrayLike,
        porosity: npt.ArrayLike,
        number_of_cells: typing.Optional[int] = None,
    ) -> "UnstructuredMesh":
        """
        Build the mesh from the face-to-cell table, deriving the cell-to-face
        adjacency.

        :param face_cells: (number_of_faces, 2) cell pairs, `EXTERIOR` outside.
        :param pore_volume: Pore volume per cell.
        :param porosity: Porosity per cell, scalar or per cell.
        :param number_of_cells: Number of cells. Defaults to the length of `pore_volume`.
        :return: `UnstructuredMesh`
        """
        pore_volume = as_float_array(pore_volume)
        n = len(pore_volume) if number_of_cells is None else int(number_of_cells)
        porosity = as_float_array(porosity)
        if porosity.shape == (1,) and n != 1:
            porosity = np.full(n, porosity[0])

        face_cells = np.asarray(face_cells, dtype=np.int64).reshape(-1, 2)
        faces = np.repeat(np.arange(face_cells.shape[0], dtype=np.int64), 2)
        cells = face_cells.ravel()
        interior = cells >= 0
        faces, cells = faces[interior], cells[interior]

        order = np.argsort(cells, kind="stable")
        counts = np.bincount(cells, minlength=n) if cells.size else np.zeros(n, np.int64)
        cell_facepos = np.zeros(n + 1, dtype=np.int64)
        np.cumsum(counts[:n], out=cell_facepos[1:])
        return cls(
            number_of_cells=n,
            face_cells=face_cells,
            cell_facepos=cell_facepos,
            cell_faces=faces[order],
            pore_volume=pore_volume,
            porosity=porosity,
        )
