"""Gaussian process surrogate model for Bayesian optimization.

The model is refitted from scratch over the full history every time: the
kernel matrix over all normalized inputs is built, a noise term plus an
escalating jitter is added to its diagonal, and the result is
Cholesky-factorized. Scores are standardized internally and mapped back on
prediction.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Mapping

import numpy as np
from scipy.linalg import cho_solve, cholesky, solve_triangular
from scipy.optimize import minimize
from sklearn.gaussian_process.kernels import Kernel

from .config import (
    JITTER,
    KERNEL,
    MAX_JITTER,
    N_RESTARTS,
    NOISE,
    NOISE_BOUNDS,
)
from .errors import SurrogateFitError
from .kernels import fixed_kernel, kernel_summary, make_kernel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurrogateState:
    """Fitted hyperparameters plus the covariance factorization.

    Owned by the optimizer and never mutated; every refit builds a new one.
    """

    kernel: Kernel
    noise_variance: float
    jitter: float
    X: np.ndarray
    y: np.ndarray
    y_mean: float
    y_std: float
    L: np.ndarray
    alpha: np.ndarray
    log_marginal_likelihood: float

    @property
    def n_points(self) -> int:
        return int(self.X.shape[0])

    @property
    def hyperparameters(self) -> dict[str, float | list[float]]:
        summary = kernel_summary(self.kernel)
        summary["noise_variance"] = float(self.noise_variance)
        return summary


class GaussianProcess:
    """Exact Gaussian process regressor over the unit hypercube."""

    def __init__(
        self,
        kernel: str | Kernel = KERNEL,
        kernel_params: str | Mapping[str, float] = "auto",
        noise: float = NOISE,
        noise_bounds: tuple[float, float] = NOISE_BOUNDS,
        n_restarts: int = N_RESTARTS,
        jitter: float = JITTER,
        max_jitter: float = MAX_JITTER,
    ) -> None:
        """Initialize the surrogate.

        Args:
            kernel: Kernel family name or a scikit-learn kernel
            kernel_params: "auto" to maximize the marginal likelihood, or a
                mapping with length_scale, signal_variance and noise_variance
                to keep them fixed
            noise: Observation noise variance (standardized scale); starting
                value when fitted
            noise_bounds: Search bounds for the noise variance
            n_restarts: Extra random starts of the likelihood optimization
            jitter: First diagonal jitter tried when factorization fails
            max_jitter: Largest jitter tried before giving up
        """
        if not (kernel_params == "auto" or isinstance(kernel_params, Mapping)):
            raise ValueError(
                f"kernel_params must be 'auto' or a mapping, got {kernel_params!r}"
            )
        if noise < 0:
            raise ValueError(f"noise must be non-negative, got {noise}")
        self.kernel = kernel
        self.kernel_params = kernel_params
        self.noise = float(noise)
        self.noise_bounds = noise_bounds
        self.n_restarts = int(n_restarts)
        self.jitter = float(jitter)
        self.max_jitter = float(max_jitter)

    @property
    def fits_hyperparameters(self) -> bool:
        return self.kernel_params == "auto"

    def jitter_levels(self) -> list[float]:
        """Diagonal jitter values tried in order, starting with none."""
        levels = [0.0]
        level = self.jitter
        # Slack for rounding in the repeated x10
        while 0.0 < level <= self.max_jitter * (1.0 + 1e-9):
            levels.append(level)
            level *= 10.0
        return levels

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        rng: np.random.Generator | None = None,
    ) -> SurrogateState:
        """Fit the Gaussian process to unit-space inputs and raw scores.

        Args:
            X: Normalized parameter matrix of shape (n, d)
            y: Scores of shape (n,)
            rng: Generator for likelihood restarts (None disables restarts)

        Returns:
            Fitted surrogate state

        Raises:
            SurrogateFitError: Covariance not factorizable up to max_jitter
        """
        X = np.atleast_2d(np.asarray(X, dtype=float))
        y = np.asarray(y, dtype=float).ravel()
        if X.shape[0] != y.shape[0]:
            raise ValueError("X and y must have the same length.")
        if X.shape[0] == 0:
            raise ValueError("Need at least one observation to fit the surrogate.")
        if not np.all(np.isfinite(y)):
            raise ValueError("Scores must be finite.")

        y_mean = float(np.mean(y))
        y_std = float(np.std(y))
        if not y_std > 1e-12 * max(1.0, abs(y_mean)):
            y_std = 1.0
        y_n = (y - y_mean) / y_std

        kernel, noise = self._initial_hyperparameters(X.shape[1])
        if self.fits_hyperparameters and X.shape[0] > 1:
            kernel, noise = self._optimize_hyperparameters(kernel, noise, X, y_n, rng)

        state = self._build_state(kernel, noise, X, y_n, y_mean, y_std)
        logger.debug(
            "Fitted GP on %d points (jitter=%g): %s",
            state.n_points,
            state.jitter,
            state.hyperparameters,
        )
        return state

    def fit_history(self, history, rng: np.random.Generator | None = None) -> SurrogateState:
        """Fit on every observation of a ``History``."""
        X, y = history.training_data()
        return self.fit(X, y, rng=rng)

    def predict(
        self, state: SurrogateState, X: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray] | tuple[float, float]:
        """Posterior predictive mean and variance in score units.

        Args:
            state: Fitted surrogate state
            X: One unit vector (d,) or a matrix (m, d)

        Returns:
            (mean, variance); floats for a single vector, arrays otherwise
        """
        X = np.asarray(X, dtype=float)
        single = X.ndim == 1
        X = np.atleast_2d(X)

        K_trans = state.kernel(X, state.X)
        mean_n = K_trans @ state.alpha
        v = solve_triangular(state.L, K_trans.T, lower=True, check_finite=False)
        var_n = state.kernel.diag(X) - np.einsum("ij,ij->j", v, v)
        var_n = np.clip(var_n, 0.0, None)

        mean = mean_n * state.y_std + state.y_mean
        variance = var_n * state.y_std**2
        if single:
            return float(mean[0]), float(variance[0])
        return mean, variance

    def condition(
        self, state: SurrogateState, X_new: np.ndarray, y_new: np.ndarray
    ) -> SurrogateState:
        """Add points to a fitted state keeping its hyperparameters.

        Used to hallucinate pending batch candidates; no likelihood fit.
        """
        X_new = np.atleast_2d(np.asarray(X_new, dtype=float))
        y_new = np.atleast_1d(np.asarray(y_new, dtype=float))
        X = np.vstack([state.X, X_new])
        y_n = np.concatenate([state.y, (y_new - state.y_mean) / state.y_std])
        return self._build_state(
            state.kernel, state.noise_variance, X, y_n, state.y_mean, state.y_std
        )

    def _initial_hyperparameters(self, dim: int) -> tuple[Kernel, float]:
        if self.fits_hyperparameters:
            return make_kernel(self.kernel, dim), self.noise
        params = dict(self.kernel_params)
        noise = float(params.get("noise_variance", self.noise))
        return fixed_kernel(self.kernel, dim, params), noise

    def _build_state(
        self,
        kernel: Kernel,
        noise: float,
        X: np.ndarray,
        y_n: np.ndarray,
        y_mean: float,
        y_std: float,
    ) -> SurrogateState:
        K = kernel(X)
        K[np.diag_indices_from(K)] += noise
        L, jitter = self._factorize(K)
        alpha = cho_solve((L, True), y_n, check_finite=False)
        lml = (
            -0.5 * float(y_n @ alpha)
            - float(np.log(np.diag(L)).sum())
            - 0.5 * len(y_n) * np.log(2.0 * np.pi)
        )
        return SurrogateState(
            kernel=kernel,
            noise_variance=float(noise),
            jitter=jitter,
            X=X,
            y=y_n,
            y_mean=y_mean,
            y_std=y_std,
            L=L,
            alpha=alpha,
            log_marginal_likelihood=lml,
        )

    def _factorize(self, K: np.ndarray) -> tuple[np.ndarray, float]:
        """Cholesky factor of K, escalating diagonal jitter on failure."""
        identity = np.eye(K.shape[0])
        for level in self.jitter_levels():
            try:
                L = cholesky(K + level * identity, lower=True)
            except (np.linalg.LinAlgError, ValueError):
                logger.debug("Cholesky failed with jitter=%g", level)
                continue
            if level > 0.0:
                logger.debug("Cholesky succeeded after adding jitter=%g", level)
            return L, level

        raise SurrogateFitError(
            f"Covariance matrix over {K.shape[0]} points is not positive "
            f"definite even with jitter={self.max_jitter:g}",
            n_points=K.shape[0],
            max_jitter=self.max_jitter,
        )

    def _fits_noise(self) -> bool:
        return self.fits_hyperparameters and not isinstance(self.noise_bounds, str)

    def _optimize_hyperparameters(
        self,
        kernel: Kernel,
        noise: float,
        X: np.ndarray,
        y_n: np.ndarray,
        rng: np.random.Generator | None,
    ) -> tuple[Kernel, float]:
        """Maximize the log marginal likelihood over log-hyperparameters."""
        fit_noise = self._fits_noise()
        theta0 = kernel.theta
        bounds = kernel.bounds
        if fit_noise:
            theta0 = np.append(theta0, np.log(max(noise, self.noise_bounds[0])))
            bounds = np.vstack([bounds, np.log(self.noise_bounds)])
        if theta0.size == 0:
            return kernel, noise

        def objective(theta: np.ndarray) -> tuple[float, np.ndarray]:
            lml, grad = self._log_marginal_likelihood(theta, kernel, noise, X, y_n)
            return -lml, -grad

        starts = [np.clip(theta0, bounds[:, 0], bounds[:, 1])]
        if rng is not None:
            starts += [
                rng.uniform(bounds[:, 0], bounds[:, 1]) for _ in range(self.n_restarts)
            ]

        best_theta, best_value = None, np.inf
        for start in starts:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                result = minimize(
                    objective, start, method="L-BFGS-B", jac=True, bounds=bounds
                )
            if np.isfinite(result.fun) and result.fun < best_value:
                best_theta, best_value = result.x, float(result.fun)

        if best_theta is None:
            logger.warning(
                "Marginal likelihood optimization failed from every start; "
                "keeping initial hyperparameters"
            )
            return kernel, noise

        if fit_noise:
            return kernel.clone_with_theta(best_theta[:-1]), float(np.exp(best_theta[-1]))
        return kernel.clone_with_theta(best_theta), noise

    def _log_marginal_likelihood(
        self,
        theta: np.ndarray,
        kernel: Kernel,
        noise: float,
        X: np.ndarray,
        y_n: np.ndarray,
    ) -> tuple[float, np.ndarray]:
        """Log marginal likelihood and its gradient w.r.t. log-hyperparameters."""
        fit_noise = self._fits_noise()
        if fit_noise:
            kernel = kernel.clone_with_theta(theta[:-1])
            noise = float(np.exp(theta[-1]))
        else:
            kernel = kernel.clone_with_theta(theta)

        K, K_gradient = kernel(X, eval_gradient=True)
        K[np.diag_indices_from(K)] += noise
        try:
            L = cholesky(K, lower=True)
        except (np.linalg.LinAlgError, ValueError):
            return -np.inf, np.zeros_like(theta)

        n = len(y_n)
        alpha = cho_solve((L, True), y_n, check_finite=False)
        lml = (
            -0.5 * float(y_n @ alpha)
            - float(np.log(np.diag(L)).sum())
            - 0.5 * n * np.log(2.0 * np.pi)
        )

        inner = np.outer(alpha, alpha) - cho_solve((L, True), np.eye(n), check_finite=False)
        grad = 0.5 * np.einsum("ij,jik->k", inner, K_gradient)
        if fit_noise:
            grad = np.append(grad, 0.5 * np.trace(inner) * noise)
        return lml, grad
