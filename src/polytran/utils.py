import typing

import numba
import numpy as np
import numpy.typing as npt

__all__ = ["interpolate_with_derivative", "as_float_array"]


@numba.njit(cache=True)
def interpolate_with_derivative(
    x: float, xp: npt.NDArray[np.floating], fp: npt.NDArray[np.floating]
) -> typing.Tuple[float, float]:
    """
    Piecewise linear interpolation of a table, with the slope of the segment
    containing `x`.

    Values are held constant (slope zero) outside the table range. At an
    interior node the slope of the segment to the right is used.

    :param x: Evaluation point.
    :param xp: Increasing table abscissae.
    :param fp: Table values.
    :return: (value, slope)
    """
    n = xp.shape[0]
    if x <= xp[0]:
        return fp[0], 0.0
    if x >= xp[n - 1]:
        return fp[n - 1], 0.0
    i = np.searchsorted(xp, x, side="right") - 1
    dx = xp[i + 1] - xp[i]
    slope = (fp[i + 1] - fp[i]) / dx
    return fp[i] + slope * (x - xp[i]), slope


def as_float_array(value: typing.Any) -> npt.NDArray[np.float64]:
    """Convert to a contiguous 1D float64 array."""
    return np.ascontiguousarray(np.atleast_1d(np.asarray(value, dtype=np.float64)))
