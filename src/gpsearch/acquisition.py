"""Acquisition functions mapping a posterior summary to a utility.

Every function takes the posterior mean and variance (score units) and
the best score observed so far; none of them looks at the history. All
are vectorized over numpy arrays.
"""

import numpy as np
from scipy.stats import norm

from .config import KAPPA, XI

_MIN_SIGMA = 1e-12


def expected_improvement(
    mean: np.ndarray,
    variance: np.ndarray,
    best: float,
    xi: float = XI,
) -> np.ndarray:
    """Expected improvement over ``best + xi``.

    Non-negative everywhere; with zero variance it reduces to
    ``max(mean - best - xi, 0)``.
    """
    mean = np.asarray(mean, dtype=float)
    sigma = np.sqrt(np.clip(np.asarray(variance, dtype=float), 0.0, None))
    improvement = mean - best - xi

    with np.errstate(divide="ignore", invalid="ignore"):
        z = improvement / np.maximum(sigma, _MIN_SIGMA)
        ei = improvement * norm.cdf(z) + sigma * norm.pdf(z)

    ei = np.where(sigma > _MIN_SIGMA, ei, np.maximum(improvement, 0.0))
    return np.maximum(ei, 0.0)


def upper_confidence_bound(
    mean: np.ndarray,
    variance: np.ndarray,
    best: float | None = None,
    kappa: float = KAPPA,
) -> np.ndarray:
    """``mean + kappa * sqrt(variance)``; ``best`` is unused."""
    sigma = np.sqrt(np.clip(np.asarray(variance, dtype=float), 0.0, None))
    return np.asarray(mean, dtype=float) + kappa * sigma


def probability_of_improvement(
    mean: np.ndarray,
    variance: np.ndarray,
    best: float,
    xi: float = XI,
) -> np.ndarray:
    """Probability that the score exceeds ``best + xi``."""
    mean = np.asarray(mean, dtype=float)
    sigma = np.sqrt(np.clip(np.asarray(variance, dtype=float), 0.0, None))
    improvement = mean - best - xi

    with np.errstate(divide="ignore", invalid="ignore"):
        pi = norm.cdf(improvement / np.maximum(sigma, _MIN_SIGMA))

    return np.where(sigma > _MIN_SIGMA, pi, (improvement > 0).astype(float))


_FUNCTIONS = {
    "ei": (expected_improvement, {"xi"}),
    "ucb": (upper_confidence_bound, {"kappa"}),
    "poi": (probability_of_improvement, {"xi"}),
}

_ALIASES = {
    "ei": "ei",
    "expected_improvement": "ei",
    "ucb": "ucb",
    "upper_confidence_bound": "ucb",
    "poi": "poi",
    "pi": "poi",
    "probability_of_improvement": "poi",
}


class AcquisitionFunction:
    """Selectable acquisition variant with its parameters bound.

    Example:
        >>> acq = AcquisitionFunction("ucb", kappa=1.96)
        >>> acq.evaluate(mean, variance, best_score)
    """

    def __init__(self, name: str = "ucb", **params: float) -> None:
        key = _ALIASES.get(str(name).lower())
        if key is None:
            raise ValueError(
                f"Unknown acquisition function {name!r}. "
                f"Available: {sorted(_FUNCTIONS)}"
            )
        func, accepted = _FUNCTIONS[key]
        self.name = key
        self._func = func
        # Parameters of other variants (e.g. kappa for EI) are ignored
        self.params = {k: float(v) for k, v in params.items() if k in accepted}

    def evaluate(self, mean, variance, best: float) -> np.ndarray:
        return self._func(mean, variance, best, **self.params)

    __call__ = evaluate

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"AcquisitionFunction({self.name!r}{', ' if args else ''}{args})"


def rank_candidates(utilities: np.ndarray, means: np.ndarray) -> np.ndarray:
    """Indices sorted by utility descending, ties broken by higher mean."""
    utilities = np.asarray(utilities, dtype=float)
    means = np.asarray(means, dtype=float)
    # lexsort sorts by the last key first
    return np.lexsort((-means, -utilities))
