"""Execution logic for optimization phases."""

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from .acquisition_optimizer import maximize
from .config import FIT_PERTURB_SCALE, MAX_PERTURB_ATTEMPTS, PERTURB_SCALE
from .errors import (
    AcquisitionOptimizationError,
    InvalidObservationError,
    ScoringFailureWarning,
    SurrogateFitError,
)
from .evaluation import EvaluationResult, evaluate_batch
from .history import FailedEvaluation, Observation, Source

logger = logging.getLogger(__name__)


class OptimizerState(str, Enum):
    INIT = "INIT"
    FITTING = "FITTING"
    PROPOSING = "PROPOSING"
    EVALUATING = "EVALUATING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PendingPoint:
    """A point waiting to be scored."""

    params: dict[str, Any]
    unit: np.ndarray
    source: Source
    utility: float = float("nan")


def run_initial_phase(optimizer) -> None:
    """Evaluate user seed points and the Latin hypercube design.

    Args:
        optimizer: BayesianOptimizer instance
    """
    if optimizer.initial_done:
        return

    logger.info("=" * 60)
    logger.info("Starting Initial Phase:")
    if optimizer.n_jobs != 1:
        logger.info("Using %s parallel jobs", optimizer.n_jobs)
    logger.info("=" * 60)

    domain = optimizer.domain
    pending = [
        PendingPoint(params=p, unit=domain.normalize(p), source="seed")
        for p in optimizer.initial_points
    ]
    n_design = max(optimizer.n_initial - len(pending), 0)
    pending += [
        PendingPoint(params=domain.denormalize(u), unit=u, source="initial")
        for u in domain.sample_unit(n_design, optimizer.rng, method="lhs")
    ]
    pending = resolve_duplicates(optimizer, pending)

    evaluate_and_record(optimizer, pending, iteration=0)
    optimizer.initial_done = True
    optimizer.save_checkpoint()


def run_bayesian_phase(optimizer, target_iterations: int) -> None:
    """Iterate fit -> propose -> evaluate until done or stopped.

    Args:
        optimizer: BayesianOptimizer instance
        target_iterations: Iteration count at which the phase ends
    """
    logger.info("=" * 60)
    logger.info("Starting Bayesian Phase:")
    logger.info("=" * 60)

    while optimizer.iteration < target_iterations:
        reason = optimizer.stopping.should_stop(
            best_score=optimizer.history.best_score,
            iters_without_improvement=optimizer.iters_without_improvement,
            elapsed=optimizer.elapsed,
            last_utility=optimizer.last_utility,
        )
        if reason:
            optimizer.stop_reason = reason
            logger.info("=" * 60)
            logger.info("Early stopping: %s", reason)
            logger.info(
                "Stopped after iteration %d/%d", optimizer.iteration, target_iterations
            )
            logger.info("=" * 60)
            break

        iteration = optimizer.iteration + 1
        logger.info("Bayesian iteration %d/%d", iteration, target_iterations)

        optimizer.state = OptimizerState.FITTING
        fit_surrogate(optimizer, iteration)

        optimizer.state = OptimizerState.PROPOSING
        pending = propose_batch(optimizer)

        previous_best = optimizer.history.best_score
        evaluate_and_record(optimizer, pending, iteration)
        optimizer.iteration = iteration
        _update_improvement(optimizer, previous_best)

        optimizer.save_checkpoint()
        logger.info("-" * 60)

    optimizer.state = OptimizerState.DONE


def fit_surrogate(optimizer, iteration: int) -> None:
    """Refit the surrogate on the full history.

    A failed factorization nudges the most duplicate-like training input
    (a copy, never the history) and retries up to ``max_fit_retries`` times.

    Raises:
        SurrogateFitError: Still failing after the retry ceiling
    """
    X, y = optimizer.history.training_data()
    if len(y) == 0:
        logger.warning("No valid observations yet; proposing random points")
        optimizer.surrogate_state = None
        return

    for attempt in range(optimizer.max_fit_retries + 1):
        try:
            optimizer.surrogate_state = optimizer.surrogate.fit(X, y, rng=optimizer.rng)
            return
        except SurrogateFitError as e:
            if attempt == optimizer.max_fit_retries:
                optimizer.state = OptimizerState.FAILED
                raise SurrogateFitError(
                    f"Surrogate fit failed at iteration {iteration} after "
                    f"{attempt} perturbation(s): {e}",
                    n_points=len(y),
                    max_jitter=e.max_jitter,
                    iteration=iteration,
                ) from e

            idx = most_duplicate_like(X)
            logger.warning(
                "Surrogate fit failed (%s); perturbing training point %d (%s)",
                e,
                idx,
                optimizer.history[idx].params,
            )
            X = X.copy()
            X[idx] = np.clip(
                X[idx] + optimizer.rng.normal(0.0, FIT_PERTURB_SCALE, X.shape[1]),
                0.0,
                1.0,
            )


def most_duplicate_like(X: np.ndarray) -> int:
    """Index of the latest point among those closest to another point."""
    if len(X) < 2:
        return len(X) - 1
    diffs = np.abs(X[:, None, :] - X[None, :, :]).max(axis=2)
    np.fill_diagonal(diffs, np.inf)
    nearest = diffs.min(axis=1)
    return int(np.flatnonzero(nearest == nearest.min())[-1])


def propose_batch(optimizer) -> list[PendingPoint]:
    """Propose ``batch_size`` distinct, not yet observed points."""
    domain = optimizer.domain
    history = optimizer.history
    state = optimizer.surrogate_state
    batch_size = optimizer.batch_size

    pending: list[PendingPoint] = []
    optimizer.last_utility = None
    if state is not None:
        try:
            candidates = maximize(
                optimizer.acquisition,
                optimizer.surrogate,
                state,
                domain,
                best_score=history.best_score,
                n_candidates=batch_size,
                rng=optimizer.rng,
                raw_samples=optimizer.raw_samples,
                n_restarts=optimizer.n_local_starts,
                tolerance=history.tolerance,
            )
        except AcquisitionOptimizationError as e:
            logger.warning("%s; falling back to random samples", e)
            candidates = []

        pending = [
            PendingPoint(
                params=c.params, unit=c.unit, source="proposed", utility=c.utility
            )
            for c in candidates
        ]
        if candidates:
            optimizer.last_utility = max(c.utility for c in candidates)
            for c in candidates:
                logger.debug(
                    "Candidate %s: utility=%.4g mean=%.4g var=%.4g",
                    c.params,
                    c.utility,
                    c.mean,
                    c.variance,
                )

    pending = resolve_duplicates(optimizer, pending)
    for _ in range(MAX_PERTURB_ATTEMPTS):
        missing = batch_size - len(pending)
        if missing <= 0:
            break
        extra = [
            PendingPoint(params=domain.denormalize(u), unit=u, source="random")
            for u in domain.sample_unit(missing, optimizer.rng, method="random")
        ]
        pending = resolve_duplicates(optimizer, pending + extra)

    if len(pending) < batch_size:
        logger.warning(
            "Only %d distinct candidates available for a batch of %d",
            len(pending),
            batch_size,
        )
    return pending[:batch_size]


def resolve_duplicates(optimizer, pending: list[PendingPoint]) -> list[PendingPoint]:
    """Perturb or drop points that coincide with history or each other."""
    domain = optimizer.domain
    history = optimizer.history
    tolerance = history.tolerance
    accepted: list[PendingPoint] = []

    def is_duplicate(unit: np.ndarray) -> bool:
        if history.contains(unit):
            return True
        return any(np.max(np.abs(unit - p.unit)) < tolerance for p in accepted)

    for point in pending:
        if not is_duplicate(point.unit):
            accepted.append(point)
            continue

        replacement = None
        for _ in range(MAX_PERTURB_ATTEMPTS):
            unit = domain.snap(
                point.unit + optimizer.rng.normal(0.0, PERTURB_SCALE, domain.dim)
            )
            if not is_duplicate(unit):
                replacement = PendingPoint(
                    params=domain.denormalize(unit),
                    unit=unit,
                    source=point.source,
                    utility=point.utility,
                )
                break

        if replacement is None:
            logger.warning("Dropping duplicate candidate %s", point.params)
            continue
        logger.info(
            "Perturbed duplicate candidate %s -> %s", point.params, replacement.params
        )
        accepted.append(replacement)

    return accepted


def evaluate_and_record(
    optimizer, pending: list[PendingPoint], iteration: int
) -> None:
    """Score a batch and commit the results in submission order.

    Nothing is written to the history until the whole batch has returned.
    Failed points are retried once when ``retry_failed`` is set.
    """
    optimizer.state = OptimizerState.EVALUATING
    if not pending:
        return

    batch_params = [p.params for p in pending]
    results = _evaluate(optimizer, batch_params)
    attempts = [1] * len(results)

    failed = [i for i, r in enumerate(results) if not r.ok]
    if failed and optimizer.retry_failed:
        logger.info("Retrying %d failed evaluation(s)", len(failed))
        retried = _evaluate(optimizer, [batch_params[i] for i in failed])
        for i, result in zip(failed, retried):
            results[i] = result
            attempts[i] = 2

    for point, result, n_attempts in zip(pending, results, attempts):
        if result.ok:
            observation = Observation(
                params=point.params,
                score=result.score,
                auxiliary=result.auxiliary,
                iteration=iteration,
                source=point.source,
                utility=point.utility,
            )
            try:
                optimizer.history.append(observation)
            except InvalidObservationError as e:
                _record_failure(optimizer, point, iteration, str(e), n_attempts)
                continue
            logger.info(
                "Evaluation %d [%s] %s -> Score: %.4f",
                len(optimizer.history),
                point.source,
                point.params,
                result.score,
            )
        else:
            _record_failure(optimizer, point, iteration, result.error, n_attempts)


def _evaluate(optimizer, batch_params: list[dict]) -> list[EvaluationResult]:
    return evaluate_batch(
        optimizer.score_function,
        batch_params,
        n_jobs=optimizer.n_jobs,
        backend=optimizer.parallel_backend,
        pass_params_as=optimizer.pass_params_as,
    )


def _record_failure(
    optimizer, point: PendingPoint, iteration: int, error: str, attempts: int
) -> None:
    optimizer.history.record_failure(
        FailedEvaluation(
            params=point.params,
            error=error,
            iteration=iteration,
            source=point.source,
            attempts=attempts,
        )
    )
    message = (
        f"Evaluation of {point.params} at iteration {iteration} failed "
        f"after {attempts} attempt(s): {error}"
    )
    logger.warning(message)
    warnings.warn(message, ScoringFailureWarning, stacklevel=2)


def _update_improvement(optimizer, previous_best: float | None) -> None:
    best = optimizer.history.best_score
    if best is not None and (previous_best is None or best > previous_best):
        optimizer.iters_without_improvement = 0
        logger.info("New best score: %.4f", best)
    else:
        optimizer.iters_without_improvement += 1
        logger.info(
            "No improvement for %d iteration(s)", optimizer.iters_without_improvement
        )
