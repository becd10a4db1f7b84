"""Global maximization of the acquisition function over the domain.

Multi-start local search on the unit hypercube: a Latin hypercube of raw
points is scored, the most promising ones (plus a few random points) seed
L-BFGS-B runs, and integer dimensions are snapped and refined by a +-1
pattern search. Batches are built greedily by hallucinating each chosen
candidate at its predicted mean before searching for the next one.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from scipy.optimize import minimize

from .acquisition import AcquisitionFunction, rank_candidates
from .config import DUPLICATE_TOLERANCE, N_LOCAL_STARTS, N_RANDOM_STARTS, RAW_SAMPLES
from .domain import Domain
from .errors import AcquisitionOptimizationError, SurrogateFitError
from .surrogate import GaussianProcess, SurrogateState

logger = logging.getLogger(__name__)

_MAX_PATTERN_STEPS = 100


@dataclass(frozen=True)
class Candidate:
    """A proposed point and its acquisition value at proposal time."""

    params: dict
    unit: np.ndarray = field(repr=False)
    utility: float
    mean: float
    variance: float


def _score_points(
    acquisition: AcquisitionFunction,
    surrogate: GaussianProcess,
    state: SurrogateState,
    U: np.ndarray,
    best_score: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    mean, variance = surrogate.predict(state, np.atleast_2d(U))
    utility = np.asarray(acquisition.evaluate(mean, variance, best_score), dtype=float)
    return utility, mean, variance


def _integer_pattern_search(
    objective: Callable[[np.ndarray], float],
    domain: Domain,
    u: np.ndarray,
) -> np.ndarray:
    """Move integer coordinates by one step while the objective improves."""
    integer_dims = np.flatnonzero(domain.integer_mask)
    steps = domain.unit_steps
    current = objective(u)

    for _ in range(_MAX_PATTERN_STEPS):
        improved = False
        for i in integer_dims:
            for direction in (1.0, -1.0):
                trial = u.copy()
                trial[i] += direction * steps[i]
                if trial[i] < -1e-9 or trial[i] > 1.0 + 1e-9:
                    continue
                trial = domain.snap(trial)
                value = objective(trial)
                if value < current - 1e-12:
                    u, current, improved = trial, value, True
        if not improved:
            break
    return u


def _local_search(
    acquisition: AcquisitionFunction,
    surrogate: GaussianProcess,
    state: SurrogateState,
    domain: Domain,
    start: np.ndarray,
    best_score: float,
) -> np.ndarray:
    """Run L-BFGS-B from ``start`` and return a snapped local optimum."""

    def objective(u: np.ndarray) -> float:
        mean, variance = surrogate.predict(state, u)
        value = float(acquisition.evaluate(mean, variance, best_score))
        return -value if np.isfinite(value) else np.inf

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = minimize(
            objective,
            np.clip(start, 0.0, 1.0),
            method="L-BFGS-B",
            bounds=[(0.0, 1.0)] * domain.dim,
        )

    u = domain.snap(result.x if np.all(np.isfinite(result.x)) else start)
    # The relaxed optimum may lose value once rounded; keep the start if so
    if objective(u) > objective(domain.snap(start)):
        u = domain.snap(start)
    if domain.integer_mask.any():
        u = _integer_pattern_search(objective, domain, u)
    return u


def _dedupe(U: np.ndarray, tolerance: float) -> np.ndarray:
    kept: list[np.ndarray] = []
    for u in U:
        if all(np.max(np.abs(u - k)) >= tolerance for k in kept):
            kept.append(u)
    return np.vstack(kept) if kept else np.empty((0, U.shape[1]))


def find_local_optima(
    acquisition: AcquisitionFunction,
    surrogate: GaussianProcess,
    state: SurrogateState,
    domain: Domain,
    best_score: float,
    rng: np.random.Generator,
    raw_samples: int = RAW_SAMPLES,
    n_restarts: int = N_LOCAL_STARTS,
    n_random_starts: int = N_RANDOM_STARTS,
    tolerance: float = DUPLICATE_TOLERANCE,
) -> list[Candidate]:
    """Distinct local optima of the acquisition, best first.

    Raises:
        AcquisitionOptimizationError: No finite acquisition value found
    """
    raw = domain.sample_unit(raw_samples, rng, method="lhs")
    utility, mean, _ = _score_points(acquisition, surrogate, state, raw, best_score)
    if not np.isfinite(utility).any():
        raise AcquisitionOptimizationError(
            f"Acquisition {acquisition!r} is not finite at any of "
            f"{raw_samples} raw samples"
        )

    order = rank_candidates(utility, mean)
    starts = [raw[i] for i in order[:n_restarts] if np.isfinite(utility[i])]
    starts += list(domain.sample_unit(n_random_starts, rng, method="random"))

    optima = [raw[order[0]]]
    for start in starts:
        optima.append(
            _local_search(acquisition, surrogate, state, domain, start, best_score)
        )
    optima = _dedupe(np.vstack(optima), tolerance)

    utility, mean, variance = _score_points(
        acquisition, surrogate, state, optima, best_score
    )
    candidates = [
        Candidate(
            params=domain.denormalize(optima[i]),
            unit=optima[i],
            utility=float(utility[i]),
            mean=float(mean[i]),
            variance=float(variance[i]),
        )
        for i in rank_candidates(utility, mean)
        if np.isfinite(utility[i])
    ]
    if not candidates:
        raise AcquisitionOptimizationError("Local search produced no finite candidate")
    return candidates


def maximize(
    acquisition: AcquisitionFunction,
    surrogate: GaussianProcess,
    state: SurrogateState,
    domain: Domain,
    best_score: float,
    n_candidates: int,
    rng: np.random.Generator,
    raw_samples: int = RAW_SAMPLES,
    n_restarts: int = N_LOCAL_STARTS,
    n_random_starts: int = N_RANDOM_STARTS,
    tolerance: float = DUPLICATE_TOLERANCE,
) -> list[Candidate]:
    """Propose up to ``n_candidates`` distinct points.

    Args:
        acquisition: Acquisition function to maximize
        surrogate: Model used for predictions and hallucinated updates
        state: Fitted surrogate state (left untouched)
        domain: Search domain
        best_score: Best score observed so far
        n_candidates: Batch size
        rng: Random generator owned by the caller
        raw_samples: Latin hypercube points scored before local search
        n_restarts: Best raw points used as local search starts
        n_random_starts: Additional uniformly drawn starts
        tolerance: Unit-space distance below which points coincide

    Returns:
        Candidates sorted by utility descending (ties by higher mean).
        Fewer than ``n_candidates`` when the search keeps collapsing onto
        already chosen points.

    Raises:
        AcquisitionOptimizationError: No feasible first candidate
    """
    if n_candidates < 1:
        raise ValueError(f"n_candidates must be >= 1, got {n_candidates}")

    chosen: list[Candidate] = []
    current = state
    for k in range(n_candidates):
        optima = find_local_optima(
            acquisition,
            surrogate,
            current,
            domain,
            best_score,
            rng,
            raw_samples=raw_samples,
            n_restarts=n_restarts,
            n_random_starts=n_random_starts,
            tolerance=tolerance,
        )
        pick = next(
            (
                c
                for c in optima
                if all(np.max(np.abs(c.unit - p.unit)) >= tolerance for p in chosen)
            ),
            None,
        )
        if pick is None:
            logger.debug(
                "Acquisition search collapsed after %d of %d candidates",
                len(chosen),
                n_candidates,
            )
            break
        chosen.append(pick)

        if k < n_candidates - 1:
            try:
                current = surrogate.condition(current, pick.unit, pick.mean)
            except SurrogateFitError:
                logger.debug("Hallucinated update failed; stopping batch early")
                break

    order = rank_candidates(
        np.array([c.utility for c in chosen]), np.array([c.mean for c in chosen])
    )
    return [chosen[i] for i in order]
