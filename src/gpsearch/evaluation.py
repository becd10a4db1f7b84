"""Dispatch of candidate points to the user scoring function."""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Callable, Literal, Mapping

from joblib import Parallel, delayed

from .errors import InvalidObservationError, ScoringFunctionError

ScoreFunction = Callable[..., Any]
PassParamsAs = Literal["dict", "kwargs"]

SCORE_KEY = "Score"


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of calling the scoring function for one point."""

    params: dict[str, Any]
    score: float | None = None
    auxiliary: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_score_output(output: Any) -> tuple[float, dict[str, Any]]:
    """Split a scoring function return value into score and extras.

    Args:
        output: Mapping with a "Score" key, or a bare number

    Returns:
        Tuple of (score, auxiliary_fields)

    Raises:
        ScoringFunctionError: Missing or non-numeric score
        InvalidObservationError: Non-finite score
    """
    if isinstance(output, Mapping):
        if SCORE_KEY not in output:
            raise ScoringFunctionError(
                f"Scoring function result has no {SCORE_KEY!r} key: "
                f"{sorted(map(str, output))}"
            )
        score = output[SCORE_KEY]
        auxiliary = {k: v for k, v in output.items() if k != SCORE_KEY}
    else:
        score = output
        auxiliary = {}

    if isinstance(score, bool) or not isinstance(score, Real):
        raise ScoringFunctionError(
            f"Score must be a number, got {type(score).__name__}"
        )
    score = float(score)
    if not math.isfinite(score):
        raise InvalidObservationError(f"Score must be finite, got {score}")
    return score, auxiliary


def evaluate_params(
    score_function: ScoreFunction,
    params: dict[str, Any],
    pass_params_as: PassParamsAs = "dict",
) -> EvaluationResult:
    """Evaluate one parameter configuration.

    Exceptions raised by the scoring function and invalid outputs are
    captured in the result so that a batch never aborts halfway.

    Args:
        score_function: User scoring function
        params: Parameter configuration to evaluate
        pass_params_as: "dict" calls score_function(params),
            "kwargs" calls score_function(**params)

    Returns:
        Evaluation result
    """
    try:
        if pass_params_as == "kwargs":
            output = score_function(**params)
        else:
            output = score_function(dict(params))
        score, auxiliary = parse_score_output(output)
    except Exception as e:
        return EvaluationResult(params=dict(params), error=f"{type(e).__name__}: {e}")

    return EvaluationResult(params=dict(params), score=score, auxiliary=auxiliary)


def evaluate_batch(
    score_function: ScoreFunction,
    batch_params: list[dict[str, Any]],
    n_jobs: int = 1,
    backend: str = "loky",
    pass_params_as: PassParamsAs = "dict",
) -> list[EvaluationResult]:
    """Evaluate a batch of candidates, in parallel when n_jobs != 1.

    Results come back in submission order whatever the completion order.

    Args:
        score_function: User scoring function
        batch_params: Parameter configurations to evaluate
        n_jobs: Number of parallel jobs (-1 for all cores)
        backend: joblib backend ("loky", "threading", "multiprocessing")
        pass_params_as: How the parameters are passed to score_function

    Returns:
        One result per configuration, same order as batch_params
    """
    if n_jobs == 1 or len(batch_params) <= 1:
        return [
            evaluate_params(score_function, params, pass_params_as)
            for params in batch_params
        ]

    if n_jobs > 0:
        n_jobs = min(n_jobs, len(batch_params))

    return Parallel(n_jobs=n_jobs, backend=backend)(
        delayed(evaluate_params)(score_function, params, pass_params_as)
        for params in batch_params
    )
