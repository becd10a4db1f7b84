"""Tests for search domain definition and scaling."""

import numpy as np
import pytest

from gpsearch.domain import Domain, ParameterSpec
from gpsearch.errors import InvalidBoundsError


def test_from_bounds_infers_kinds(mixed_domain):
    """Pairs of ints become integer parameters."""
    kinds = {s.name: s.kind for s in mixed_domain.specs}

    assert kinds == {"lr": "continuous", "depth": "integer"}
    assert mixed_domain.names == ["lr", "depth"]
    assert mixed_domain.dim == 2
    assert list(mixed_domain.integer_mask) == [False, True]


@pytest.mark.parametrize(
    "bounds",
    [
        {},
        {"x": (1.0, 1.0)},
        {"x": (2.0, 1.0)},
        {"x": (0.0, float("inf"))},
        {"x": (0.0,)},
        {"x": ("a", "b")},
    ],
)
def test_invalid_bounds_raise(bounds):
    with pytest.raises(InvalidBoundsError):
        Domain.from_bounds(bounds)


def test_invalid_bounds_are_value_errors():
    with pytest.raises(ValueError):
        Domain.from_bounds({"x": (5, 1)})


def test_integer_spec_needs_whole_bounds():
    with pytest.raises(InvalidBoundsError):
        ParameterSpec("n", "integer", 0.5, 3)


def test_duplicate_names_rejected():
    spec = ParameterSpec("x", "continuous", 0.0, 1.0)
    with pytest.raises(InvalidBoundsError):
        Domain([spec, spec])


def test_normalize_denormalize_round_trip(mixed_domain):
    params = {"lr": 0.0505, "depth": 7}

    unit = mixed_domain.normalize(params)
    back = mixed_domain.denormalize(unit)

    assert np.allclose(unit, [0.5, 0.5])
    assert back["depth"] == 7
    assert isinstance(back["depth"], int)
    assert back["lr"] == pytest.approx(0.0505)


def test_denormalize_clips_and_rounds(mixed_domain):
    params = mixed_domain.denormalize([1.7, 0.44])

    assert params["lr"] == pytest.approx(0.1)
    assert params["depth"] == 6


def test_normalize_missing_parameter(mixed_domain):
    with pytest.raises(KeyError):
        mixed_domain.normalize({"lr": 0.01})


def test_denormalize_wrong_length(mixed_domain):
    with pytest.raises(ValueError):
        mixed_domain.denormalize([0.5])


def test_is_in_bounds(mixed_domain):
    assert mixed_domain.is_in_bounds({"lr": 0.01, "depth": 3})
    assert not mixed_domain.is_in_bounds({"lr": 0.5, "depth": 3})
    assert not mixed_domain.is_in_bounds({"lr": 0.01, "depth": 3.5})
    assert not mixed_domain.is_in_bounds({"lr": float("nan"), "depth": 3})
    assert not mixed_domain.is_in_bounds({"lr": 0.01})


@pytest.mark.parametrize("method", ["lhs", "random"])
def test_samples_respect_bounds(mixed_domain, rng, method):
    samples = mixed_domain.sample_uniform(50, rng, method=method)

    assert len(samples) == 50
    for params in samples:
        assert mixed_domain.is_in_bounds(params), f"FAILED: {params} out of bounds"
        assert isinstance(params["depth"], int)


def test_lhs_stratifies_each_dimension(line_domain, rng):
    unit = line_domain.sample_unit(10, rng, method="lhs")
    bins = np.floor(unit[:, 0] * 10).astype(int)

    assert sorted(bins) == list(range(10))


def test_sampling_is_reproducible(mixed_domain):
    a = mixed_domain.sample_unit(5, np.random.default_rng(1))
    b = mixed_domain.sample_unit(5, np.random.default_rng(1))

    assert np.array_equal(a, b)


def test_sample_zero_points(mixed_domain, rng):
    assert mixed_domain.sample_unit(0, rng).shape == (0, 2)


def test_unknown_sampling_method(mixed_domain, rng):
    with pytest.raises(ValueError):
        mixed_domain.sample_unit(3, rng, method="sobol")


def test_snap_lands_on_integer_grid(mixed_domain):
    snapped = mixed_domain.snap([0.33, 0.33])
    depth = 2 + snapped[1] * 10

    assert depth == pytest.approx(round(depth))
    assert snapped[0] == pytest.approx(0.33)
