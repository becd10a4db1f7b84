"""Tests for the observation history."""

import math

import numpy as np
import pytest

from gpsearch.errors import InvalidObservationError
from gpsearch.history import FailedEvaluation, History, Observation


@pytest.fixture
def history(mixed_domain):
    return History(mixed_domain)


def test_append_tracks_best(history):
    history.append(Observation({"lr": 0.01, "depth": 3}, 0.5))
    history.append(Observation({"lr": 0.02, "depth": 4}, 0.9))
    history.append(Observation({"lr": 0.03, "depth": 5}, 0.7))

    assert len(history) == 3
    assert history.best_score == 0.9
    assert history.best.params == {"lr": 0.02, "depth": 4}
    assert history.best_score_trace == [0.5, 0.9, 0.9]


def test_ties_keep_earliest(history):
    history.append(Observation({"lr": 0.01, "depth": 3}, 1.0, iteration=0))
    history.append(Observation({"lr": 0.02, "depth": 3}, 1.0, iteration=1))

    assert history.best.iteration == 0


def test_empty_history(history):
    X, y = history.training_data()

    assert history.best is None
    assert history.best_score is None
    assert X.shape == (0, 2)
    assert y.shape == (0,)


@pytest.mark.parametrize("score", [float("nan"), float("inf"), "1.0", None, True])
def test_rejects_invalid_scores(history, score):
    with pytest.raises(InvalidObservationError):
        history.append(Observation({"lr": 0.01, "depth": 3}, score))
    assert len(history) == 0


def test_rejects_out_of_bounds(history):
    with pytest.raises(InvalidObservationError) as excinfo:
        history.append(Observation({"lr": 1.0, "depth": 3}, 0.1))

    assert excinfo.value.params == {"lr": 1.0, "depth": 3}


def test_rejects_duplicates(history):
    history.append(Observation({"lr": 0.01, "depth": 3}, 0.5))

    with pytest.raises(InvalidObservationError):
        history.append(Observation({"lr": 0.01, "depth": 3}, 0.6))
    assert len(history) == 1


def test_contains_and_nearest_distance(history, mixed_domain):
    history.append(Observation({"lr": 0.001, "depth": 2}, 0.5))

    assert history.contains(np.zeros(2))
    assert not history.contains(np.array([0.0, 0.1]))
    assert history.nearest_distance(np.array([0.0, 0.1])) == pytest.approx(0.1)
    assert history.contains(np.array([0.0, 0.1]), tolerance=0.2)


def test_training_data_in_unit_space(history):
    history.append(Observation({"lr": 0.001, "depth": 12}, 0.5))
    history.append(Observation({"lr": 0.1, "depth": 2}, -0.5))

    X, y = history.training_data()

    assert np.allclose(X, [[0.0, 1.0], [1.0, 0.0]])
    assert np.allclose(y, [0.5, -0.5])


def test_to_frame_columns(history):
    history.append(
        Observation(
            {"lr": 0.01, "depth": 3},
            0.5,
            auxiliary={"fit_time": 1.2},
            iteration=1,
            source="proposed",
            utility=0.3,
        )
    )

    frame = history.to_frame()

    assert list(frame.columns) == [
        "iteration",
        "source",
        "lr",
        "depth",
        "utility",
        "Score",
        "fit_time",
    ]
    assert frame.loc[0, "fit_time"] == 1.2
    assert frame.loc[0, "source"] == "proposed"


def test_empty_frame_has_columns(history):
    frame = history.to_frame()

    assert frame.empty
    assert "Score" in frame.columns


def test_failures_are_kept_apart(history):
    history.record_failure(
        FailedEvaluation({"lr": 0.01, "depth": 3}, "ValueError: boom", iteration=2)
    )

    frame = history.failures_frame()

    assert len(history) == 0
    assert len(history.failures) == 1
    assert frame.loc[0, "error"] == "ValueError: boom"
    assert math.isnan(Observation({"lr": 0.01, "depth": 3}, 0.1).utility)
