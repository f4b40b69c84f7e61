"""
Bracketing scalar root-finders used by the cell solvers.
"""

import logging

import attrs
import numpy as np

from polytran.errors import RootFindingError, ValidationError
from polytran.types import ErrorPolicy, ScalarFunction

logger = logging.getLogger(__name__)

__all__ = ["RootResult", "modified_regula_falsi", "regula_falsi_step"]


@attrs.frozen(slots=True)
class RootResult:
    """Result of a scalar root-finding run."""

    root: float
    """Approximate root, or the best available point if not converged."""
    iterations: int
    """Number of function evaluations spent after the two end point evaluations."""
    converged: bool
    """Whether the tolerance was met (or the bracket collapsed onto the root)."""


def regula_falsi_step(a: float, b: float, fa: float, fb: float) -> float:
    """
    Secant step through (a, fa) and (b, fb).

    Falls back to the midpoint when the step is not strictly inside the
    bracket, which happens for flat or non-finite function values.
    """
    denominator = fa - fb
    if denominator != 0.0:
        x = (b * fa - a * fb) / denominator
        if min(a, b) < x < max(a, b):
            return x
    return 0.5 * (a + b)


def _handle_failure(
    message: str, best: float, on_error: ErrorPolicy
) -> None:
    if on_error == "raise":
        raise RootFindingError(message)
    if on_error == "warn":
        logger.warning(f"{message} Using x = {best:.10g}.")


def modified_regula_falsi(
    func: ScalarFunction,
    a: float,
    b: float,
    max_iterations: int,
    tolerance: float,
    on_error: ErrorPolicy = "raise",
) -> RootResult:
    """
    Find a zero of `func` in the interval [a, b].

    Regula falsi with the Pegasus modification of the retained end point's
    function value, and a bisection step whenever two consecutive iterations
    fail to halve the bracket. The function does not need to be strictly
    monotone, only continuous with a sign change on [a, b].

    Converges when |func(x)| <= tolerance, or when the bracket has collapsed
    to machine precision.

    :param func: Continuous scalar function.
    :param a: Lower end of the bracket.
    :param b: Upper end of the bracket.
    :param max_iterations: Maximum number of iterations.
    :param tolerance: Absolute tolerance on the function value.
    :param on_error: What to do if the interval does not bracket a root or
        the iteration cap is hit ('raise', 'warn', 'ignore').
    :return: `RootResult` with the root and the iteration count.
    """
    if on_error not in ("raise", "warn", "ignore"):
        raise ValidationError(f"Unknown error policy {on_error!r}")

    x0, x1 = float(a), float(b)
    f0 = func(x0)
    if abs(f0) <= tolerance:
        return RootResult(root=x0, iterations=0, converged=True)
    f1 = func(x1)
    if abs(f1) <= tolerance:
        return RootResult(root=x1, iterations=0, converged=True)

    if f0 * f1 > 0.0:
        best = x0 if abs(f0) <= abs(f1) else x1
        _handle_failure(
            f"Zero not bracketed: [a, b] = [{x0:.10g}, {x1:.10g}], "
            f"f(a) = {f0:.6e}, f(b) = {f1:.6e}.",
            best,
            on_error,
        )
        return RootResult(root=best, iterations=0, converged=False)

    macheps = np.finfo(float).eps
    x_tolerance = 4.0 * macheps * max(abs(x0), abs(x1), 1.0)
    width = abs(x1 - x0)
    stalled = 0
    iterations = 0

    # x1 is the last point computed, x0 the last point that brackets with it.
    while abs(x1 - x0) > x_tolerance:
        if iterations >= max_iterations:
            best = 0.5 * (x0 + x1)
            _handle_failure(
                f"Root-finder did not converge in {max_iterations} iterations, "
                f"bracket [{min(x0, x1):.10g}, {max(x0, x1):.10g}].",
                best,
                on_error,
            )
            return RootResult(root=best, iterations=iterations, converged=False)

        bisect = stalled >= 2
        if bisect:
            xnew = 0.5 * (x0 + x1)
            stalled = 0
        else:
            xnew = regula_falsi_step(x0, x1, f0, f1)
        fnew = func(xnew)
        iterations += 1
        if abs(fnew) <= tolerance:
            return RootResult(root=xnew, iterations=iterations, converged=True)

        if bisect:
            if (fnew > 0.0) == (f0 > 0.0):
                x0, f0 = xnew, fnew
            else:
                x1, f1 = xnew, fnew
        else:
            if (fnew > 0.0) == (f0 > 0.0):
                x0, f0 = x1, f1
            else:
                # Pegasus scaling
                f0 *= f1 / (f1 + fnew)
            x1, f1 = xnew, fnew

        new_width = abs(x1 - x0)
        stalled = stalled + 1 if new_width > 0.5 * width else 0
        width = new_width

    return RootResult(root=0.5 * (x0 + x1), iterations=iterations, converged=True)
