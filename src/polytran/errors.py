__all__ = [
    "PolyTranError",
    "ValidationError",
    "ConfigurationError",
    "SolverError",
    "RootFindingError",
    "MultiCellConvergenceError",
    "SplittingFallbackWarning",
]


class PolyTranError(Exception):
    """Base class for all polytran-related errors."""

    pass


class ValidationError(PolyTranError, ValueError):
    """Raised when input data fails validation checks."""

    pass


class ConfigurationError(PolyTranError, ValueError):
    """Raised when a solver is constructed with an unsupported configuration."""

    pass


class SolverError(PolyTranError):
    """Raised when a solver fails to converge within the specified iterations."""

    pass


class RootFindingError(SolverError):
    """Raised when a scalar root-finder is given no bracket or runs out of iterations."""

    pass


class MultiCellConvergenceError(SolverError):
    """
    Raised when the fixed-point iteration over a cyclic group of cells
    does not settle within the iteration cap.

    The time step should be retried with a smaller step size.
    """

    def __init__(
        self,
        max_saturation_change: float,
        max_concentration_change: float,
        iterations: int,
        cells=None,
    ) -> None:
        self.max_saturation_change = max_saturation_change
        self.max_concentration_change = max_concentration_change
        self.iterations = iterations
        self.cells = cells
        super().__init__(
            f"Multi-cell solve did not converge after {iterations} iterations. "
            f"Delta s = {max_saturation_change:.3e}, delta c = {max_concentration_change:.3e}"
        )


class SplittingFallbackWarning(UserWarning):
    """Issued when the splitting method gives up on a cell and bracketing is used instead."""

    pass
