"""Tests for the Gaussian process surrogate."""

import numpy as np
import pytest

from gpsearch.errors import SurrogateFitError
from gpsearch.history import History, Observation
from gpsearch.kernels import fixed_kernel, make_kernel
from gpsearch.surrogate import GaussianProcess

FIXED = {"length_scale": 0.3, "signal_variance": 1.0, "noise_variance": 1e-6}


@pytest.fixture
def sine_data(rng):
    X = rng.uniform(0.0, 1.0, size=(12, 1))
    y = np.sin(6.0 * X[:, 0])
    return X, y


def test_interpolates_training_points(sine_data, rng):
    X, y = sine_data
    gp = GaussianProcess()

    state = gp.fit(X, y, rng=rng)
    mean, variance = gp.predict(state, X)

    assert np.allclose(mean, y, atol=1e-2), "FAILED: GP does not reproduce its data"
    assert np.all(variance < 1e-2)


def test_variance_grows_away_from_data(rng):
    X = np.array([[0.0], [0.1], [0.2]])
    y = np.array([1.0, 2.0, 1.5])
    gp = GaussianProcess(kernel_params=FIXED)

    state = gp.fit(X, y, rng=rng)
    _, near = gp.predict(state, np.array([0.1]))
    _, far = gp.predict(state, np.array([0.9]))

    assert far > near
    assert near >= 0.0


def test_far_prediction_reverts_to_mean(rng):
    X = np.array([[0.0], [0.05]])
    y = np.array([3.0, 5.0])
    gp = GaussianProcess(kernel_params={"length_scale": 0.05, "signal_variance": 1.0})

    state = gp.fit(X, y, rng=rng)
    mean, _ = gp.predict(state, np.array([1.0]))

    assert mean == pytest.approx(4.0, abs=1e-3)


def test_predict_shapes(sine_data, rng):
    X, y = sine_data
    gp = GaussianProcess(kernel_params=FIXED)
    state = gp.fit(X, y, rng=rng)

    mean, variance = gp.predict(state, np.linspace(0, 1, 7)[:, None])
    single_mean, single_var = gp.predict(state, np.array([0.5]))

    assert mean.shape == (7,)
    assert variance.shape == (7,)
    assert isinstance(single_mean, float)
    assert isinstance(single_var, float)


def test_single_point_and_constant_scores():
    gp = GaussianProcess()

    one = gp.fit(np.array([[0.5]]), np.array([2.0]))
    flat = gp.fit(np.array([[0.1], [0.9]]), np.array([1.0, 1.0]))

    assert gp.predict(one, np.array([0.5]))[0] == pytest.approx(2.0, abs=1e-3)
    assert gp.predict(flat, np.array([0.5]))[0] == pytest.approx(1.0, abs=1e-6)


def test_jitter_recovers_duplicate_inputs():
    X = np.array([[0.4], [0.4]])
    y = np.array([1.0, 1.0])
    gp = GaussianProcess(kernel_params={**FIXED, "noise_variance": 0.0})

    state = gp.fit(X, y)

    assert state.jitter > 0.0
    assert state.jitter <= gp.max_jitter


def test_fit_error_when_jitter_exhausted():
    X = np.array([[0.4], [0.4]])
    y = np.array([1.0, 2.0])
    gp = GaussianProcess(
        kernel_params={"signal_variance": 1.0, "noise_variance": 0.0},
        jitter=1e-3,
        max_jitter=1e-4,
    )

    assert gp.jitter_levels() == [0.0]
    with pytest.raises(SurrogateFitError) as excinfo:
        gp.fit(X, y)
    assert excinfo.value.n_points == 2
    assert excinfo.value.max_jitter == 1e-4


def test_jitter_ladder():
    gp = GaussianProcess(jitter=1e-6, max_jitter=1e-3)

    assert gp.jitter_levels() == pytest.approx([0.0, 1e-6, 1e-5, 1e-4, 1e-3])


def test_hyperparameter_fit_improves_likelihood(sine_data, rng):
    X, y = sine_data
    fixed = GaussianProcess(
        kernel_params={"length_scale": 5.0, "signal_variance": 1.0, "noise_variance": 1e-2}
    )
    fitted = GaussianProcess()

    lml_fixed = fixed.fit(X, y).log_marginal_likelihood
    lml_fitted = fitted.fit(X, y, rng=rng).log_marginal_likelihood

    assert lml_fitted > lml_fixed


def test_fit_is_deterministic_for_same_seed(sine_data):
    X, y = sine_data
    gp = GaussianProcess()

    a = gp.fit(X, y, rng=np.random.default_rng(3))
    b = gp.fit(X, y, rng=np.random.default_rng(3))

    assert a.hyperparameters == b.hyperparameters


def test_condition_keeps_hyperparameters(sine_data):
    X, y = sine_data
    gp = GaussianProcess(kernel_params=FIXED)
    state = gp.fit(X, y)

    new_x = np.array([0.55])
    mean, _ = gp.predict(state, new_x)
    updated = gp.condition(state, new_x, mean)
    _, variance_after = gp.predict(updated, new_x)

    assert updated.n_points == state.n_points + 1
    assert updated.hyperparameters == state.hyperparameters
    assert variance_after < 1e-4
    assert state.n_points == len(y)


def test_fit_history(mixed_domain, rng):
    history = History(mixed_domain)
    history.append(Observation({"lr": 0.01, "depth": 3}, 0.5))
    history.append(Observation({"lr": 0.05, "depth": 8}, 0.8))

    state = GaussianProcess().fit_history(history, rng=rng)

    assert state.n_points == 2
    assert state.X.shape == (2, 2)


@pytest.mark.parametrize(
    "X, y",
    [
        (np.empty((0, 1)), np.empty(0)),
        (np.array([[0.1], [0.2]]), np.array([1.0])),
        (np.array([[0.1]]), np.array([np.nan])),
    ],
)
def test_fit_rejects_bad_input(X, y):
    with pytest.raises(ValueError):
        GaussianProcess().fit(X, y)


def test_invalid_configuration():
    with pytest.raises(ValueError):
        GaussianProcess(kernel_params="fixed")
    with pytest.raises(ValueError):
        GaussianProcess(noise=-1.0)
    with pytest.raises(ValueError):
        GaussianProcess(kernel="cosine").fit(np.array([[0.1]]), np.array([1.0]))


def test_kernel_families():
    for name in ("matern52", "matern32", "rbf", "se"):
        kernel = make_kernel(name, dim=3)
        assert kernel(np.zeros((1, 3))).shape == (1, 1)
        assert len(kernel.theta) == 4


def test_fixed_kernel_rejects_unknown_keys():
    with pytest.raises(ValueError):
        fixed_kernel("rbf", 1, {"period": 2.0})


def test_fixed_kernel_has_no_free_hyperparameters():
    kernel = fixed_kernel(make_kernel("matern52", 2), 2, {})

    assert kernel.theta.size == 0
