"""Append-only record of evaluated points."""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Iterator, Literal

import numpy as np
import pandas as pd

from .config import DUPLICATE_TOLERANCE
from .domain import Domain
from .errors import InvalidObservationError

Source = Literal["initial", "seed", "proposed", "random"]


@dataclass(frozen=True)
class Observation:
    """One successfully scored point."""

    params: dict[str, Any]
    score: float
    auxiliary: dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    source: Source = "initial"
    utility: float = float("nan")


@dataclass(frozen=True)
class FailedEvaluation:
    """A point whose evaluation was rejected."""

    params: dict[str, Any]
    error: str
    iteration: int = 0
    source: Source = "initial"
    attempts: int = 1


class History:
    """Ordered observations of one optimization run.

    Observations are only ever appended. No two of them may share a
    parameter vector (max-norm distance in unit space below ``tolerance``),
    otherwise the surrogate covariance matrix turns singular.
    """

    def __init__(self, domain: Domain, tolerance: float = DUPLICATE_TOLERANCE) -> None:
        self.domain = domain
        self.tolerance = tolerance
        self._observations: list[Observation] = []
        self._failures: list[FailedEvaluation] = []
        self._units: list[np.ndarray] = []
        self._best_index: int | None = None
        self._best_trace: list[float] = []

    def __len__(self) -> int:
        return len(self._observations)

    def __iter__(self) -> Iterator[Observation]:
        return iter(self._observations)

    def __getitem__(self, index: int) -> Observation:
        return self._observations[index]

    @property
    def observations(self) -> tuple[Observation, ...]:
        return tuple(self._observations)

    @property
    def failures(self) -> tuple[FailedEvaluation, ...]:
        return tuple(self._failures)

    @property
    def best(self) -> Observation | None:
        if self._best_index is None:
            return None
        return self._observations[self._best_index]

    @property
    def best_score(self) -> float | None:
        best = self.best
        return None if best is None else best.score

    @property
    def best_score_trace(self) -> list[float]:
        """Best score after each appended observation."""
        return list(self._best_trace)

    def validate(self, params: dict[str, Any], score: float) -> None:
        """Check that a scored point may enter the history.

        Raises:
            InvalidObservationError: Score not finite, params out of bounds
                or already present
        """
        if not isinstance(score, Real) or isinstance(score, bool):
            raise InvalidObservationError(
                f"Score must be a number, got {type(score).__name__}", params
            )
        if not math.isfinite(float(score)):
            raise InvalidObservationError(f"Score must be finite, got {score}", params)
        if not self.domain.is_in_bounds(params):
            raise InvalidObservationError(
                f"Parameters out of bounds: {params!r}", params
            )
        if self.contains(self.domain.normalize(params)):
            raise InvalidObservationError(
                f"Duplicate parameter vector: {params!r}", params
            )

    def append(self, observation: Observation) -> None:
        self.validate(observation.params, observation.score)
        self._observations.append(observation)
        self._units.append(self.domain.normalize(observation.params))

        best = self.best
        # Strict comparison keeps the earliest observation on ties
        if best is None or observation.score > best.score:
            self._best_index = len(self._observations) - 1
        self._best_trace.append(float(self.best.score))

    def record_failure(self, failure: FailedEvaluation) -> None:
        self._failures.append(failure)

    def contains(self, unit: np.ndarray, tolerance: float | None = None) -> bool:
        return self.nearest_distance(unit) < (
            self.tolerance if tolerance is None else tolerance
        )

    def nearest_distance(self, unit: np.ndarray) -> float:
        """Max-norm distance from ``unit`` to the closest observed point."""
        if not self._units:
            return math.inf
        diffs = np.abs(np.vstack(self._units) - np.asarray(unit, dtype=float))
        return float(diffs.max(axis=1).min())

    def training_data(self) -> tuple[np.ndarray, np.ndarray]:
        """Extract the surrogate training data.

        Returns:
            Tuple of (unit_parameter_matrix, score_vector)
        """
        if not self._observations:
            return np.empty((0, self.domain.dim)), np.empty(0)
        X = np.vstack(self._units)
        y = np.array([o.score for o in self._observations])
        return X, y

    def to_frame(self) -> pd.DataFrame:
        """Build the score summary, one row per observation."""
        param_names = self.domain.names
        records = []
        for obs in self._observations:
            record: dict[str, Any] = {
                "iteration": obs.iteration,
                "source": obs.source,
            }
            for name in param_names:
                record[name] = obs.params[name]
            record["utility"] = obs.utility
            record["Score"] = obs.score
            for key, value in obs.auxiliary.items():
                if key not in record:
                    record[key] = value
            records.append(record)

        columns = ["iteration", "source", *param_names, "utility", "Score"]
        frame = pd.DataFrame(records)
        if frame.empty:
            return pd.DataFrame(columns=columns)
        extra = [c for c in frame.columns if c not in columns]
        return frame[columns + extra]

    def failures_frame(self) -> pd.DataFrame:
        records = [
            {
                "iteration": f.iteration,
                "source": f.source,
                **{name: f.params.get(name) for name in self.domain.names},
                "attempts": f.attempts,
                "error": f.error,
            }
            for f in self._failures
        ]
        columns = ["iteration", "source", *self.domain.names, "attempts", "error"]
        if not records:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(records)[columns]
