"""Exception and warning types raised by the optimizer."""


class GPSearchError(Exception):
    """Base class for all optimizer errors."""


class InvalidBoundsError(GPSearchError, ValueError):
    """Raised when a search domain is malformed."""


class InvalidObservationError(GPSearchError):
    """Raised when an evaluated point cannot enter the history.

    Covers non-finite or missing scores, out-of-bounds parameters and
    duplicate parameter vectors.
    """

    def __init__(self, message: str, params: dict | None = None) -> None:
        super().__init__(message)
        self.params = params


class SurrogateFitError(GPSearchError):
    """Raised when the covariance matrix stays ill-conditioned."""

    def __init__(
        self,
        message: str,
        n_points: int | None = None,
        max_jitter: float | None = None,
        iteration: int | None = None,
    ) -> None:
        super().__init__(message)
        self.n_points = n_points
        self.max_jitter = max_jitter
        self.iteration = iteration


class AcquisitionOptimizationError(GPSearchError):
    """Raised when no feasible candidate could be found."""


class ScoringFunctionError(GPSearchError, ValueError):
    """Raised when the scoring function output is unusable."""

    def __init__(self, message: str, params: dict | None = None) -> None:
        super().__init__(message)
        self.params = params


class ScoringFailureWarning(UserWarning):
    """Emitted when a candidate keeps failing after its retry."""
