"""
Shared fixtures and configuration for gpsearch tests.
"""

import logging

import numpy as np
import pytest

from gpsearch.domain import Domain

RANDOM_SEED = 42


@pytest.fixture(autouse=True)
def quiet_package_logger():
    """Keep optimizer runs from flooding the test output."""
    logger = logging.getLogger("gpsearch")
    previous = logger.level
    logger.setLevel(logging.WARNING)
    yield
    logger.setLevel(previous)


@pytest.fixture
def rng():
    return np.random.default_rng(RANDOM_SEED)


@pytest.fixture
def line_domain():
    """Single continuous parameter on [0, 10]."""
    return Domain.from_bounds({"x": (0.0, 10.0)})


@pytest.fixture
def mixed_domain():
    """One continuous and one integer parameter."""
    return Domain.from_bounds({"lr": (0.001, 0.1), "depth": (2, 12)})


@pytest.fixture
def quadratic():
    """Maximum of 0 at x = 7."""

    def score(params):
        return {"Score": -((params["x"] - 7.0) ** 2)}

    return score


@pytest.fixture
def quadratic_2d():
    """Maximum of 0 at (x, y) = (0.3, 0.6)."""

    def score(params):
        return {
            "Score": -((params["x"] - 0.3) ** 2) - (params["y"] - 0.6) ** 2,
            "distance": abs(params["x"] - 0.3) + abs(params["y"] - 0.6),
        }

    return score
