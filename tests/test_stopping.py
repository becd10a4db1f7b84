"""Tests for early-stopping rules."""

import pytest

from gpsearch.stopping import StoppingPolicy


def test_default_never_stops():
    policy = StoppingPolicy()

    assert policy.should_stop(1e9, 1000, 1e9, last_utility=0.0) is None


def test_target_score():
    policy = StoppingPolicy(target_score=0.9)

    assert policy.should_stop(0.8, 0, 0.0) is None
    assert "target" in policy.should_stop(0.9, 0, 0.0)
    assert policy.should_stop(None, 0, 0.0) is None


def test_patience():
    policy = StoppingPolicy(patience=3)

    assert policy.should_stop(0.0, 2, 0.0) is None
    assert "no improvement" in policy.should_stop(0.0, 3, 0.0)


def test_time_limit():
    policy = StoppingPolicy(time_limit=10.0)

    assert policy.should_stop(0.0, 0, 9.9) is None
    assert "time limit" in policy.should_stop(0.0, 0, 10.5)


def test_min_utility():
    policy = StoppingPolicy(min_utility=1e-3)

    assert policy.should_stop(0.0, 0, 0.0, last_utility=None) is None
    assert policy.should_stop(0.0, 0, 0.0, last_utility=0.1) is None
    assert "utility" in policy.should_stop(0.0, 0, 0.0, last_utility=1e-5)


@pytest.mark.parametrize("kwargs", [{"patience": 0}, {"time_limit": 0.0}])
def test_invalid_policy(kwargs):
    with pytest.raises(ValueError):
        StoppingPolicy(**kwargs)
