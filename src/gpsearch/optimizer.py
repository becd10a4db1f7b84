"""Main Bayesian optimizer class."""

import logging
import time
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from . import config
from .acquisition import AcquisitionFunction
from .checkpointing import create_run_hash, load_checkpoint, save_checkpoint
from .domain import Domain
from .evaluation import PassParamsAs, ScoreFunction
from .history import History
from .logging_config import PACKAGE_LOGGER, setup_logger
from .phases import OptimizerState, run_bayesian_phase, run_initial_phase
from .stopping import StoppingPolicy
from .surrogate import GaussianProcess, SurrogateState

logger = logging.getLogger(__name__)

__all__ = ["BayesianOptimizer", "OptimizerState"]


class BayesianOptimizer:
    """Bayesian optimizer maximizing a black-box scoring function."""

    def __init__(
        self,
        score_function: ScoreFunction,
        bounds: Mapping[str, Sequence[float]] | Domain,
        n_initial: int = config.N_INITIAL,
        n_iterations: int = config.N_ITERATIONS,
        batch_size: int = config.BATCH_SIZE,
        acquisition: str | AcquisitionFunction = config.ACQUISITION,
        kappa: float = config.KAPPA,
        xi: float = config.XI,
        kernel: str = config.KERNEL,
        kernel_params: str | Mapping[str, float] = "auto",
        random_state: int | None = config.RANDOM_SEED,
        n_jobs: int = 1,
        parallel_backend: str = "loky",
        pass_params_as: PassParamsAs = "dict",
        initial_points: Sequence[Mapping[str, Any]] | pd.DataFrame | None = None,
        retry_failed: bool = True,
        stopping: StoppingPolicy | Mapping[str, Any] | None = None,
        max_fit_retries: int = config.MAX_FIT_RETRIES,
        checkpoint_dir: str | None = None,
        raw_samples: int = config.RAW_SAMPLES,
        n_local_starts: int = config.N_LOCAL_STARTS,
        verbose: bool = True,
    ) -> None:
        """Initialize Bayesian optimizer.

        Args:
            score_function: Function returning {"Score": value, ...} (or a
                bare number) for a parameter configuration; higher is better
            bounds: Parameter search space as {name: (lower, upper)}; a pair
                of ints marks an integer parameter
            n_initial: Number of initial points (seeds plus Latin hypercube)
            n_iterations: Number of Bayesian optimization iterations
            batch_size: Candidates proposed and scored per iteration
            acquisition: "ucb", "ei" or "poi", or an AcquisitionFunction
            kappa: Exploration weight for UCB
            xi: Improvement margin for EI and POI
            kernel: Kernel family ("matern52", "matern32", "rbf")
            kernel_params: "auto" to fit hyperparameters, or fixed values
            random_state: Random seed for reproducibility
            n_jobs: Number of parallel jobs for scoring (-1 for all)
            parallel_backend: joblib backend used when n_jobs != 1
            pass_params_as: "dict" calls score_function(params), "kwargs"
                calls score_function(**params)
            initial_points: Parameter configurations scored before the
                Latin hypercube design
            retry_failed: Re-evaluate failed points once before recording
                them as failures
            stopping: Early-stopping policy (or its keyword arguments)
            max_fit_retries: Perturb-and-refit attempts after a failed fit
            checkpoint_dir: Directory for saving checkpoints (None to disable)
            raw_samples: Points scored before local acquisition search
            n_local_starts: Local acquisition search starts
            verbose: Log progress at INFO level

        Raises:
            InvalidBoundsError: Malformed bounds
            ValueError: Invalid configuration or initial points
        """
        self.domain = Domain.from_bounds(bounds)
        if n_initial < 1:
            raise ValueError(f"n_initial must be >= 1, got {n_initial}")
        if n_iterations < 0:
            raise ValueError(f"n_iterations must be >= 0, got {n_iterations}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if pass_params_as not in ("dict", "kwargs"):
            raise ValueError(
                f"pass_params_as must be 'dict' or 'kwargs', got {pass_params_as!r}"
            )
        if max_fit_retries < 0:
            raise ValueError(f"max_fit_retries must be >= 0, got {max_fit_retries}")
        if n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")

        self.score_function = score_function
        self.n_initial = n_initial
        self.n_iterations = n_iterations
        self.batch_size = batch_size
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.parallel_backend = parallel_backend
        self.pass_params_as = pass_params_as
        self.retry_failed = retry_failed
        self.max_fit_retries = max_fit_retries
        self.checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir else None
        self.raw_samples = raw_samples
        self.n_local_starts = n_local_starts
        self.verbose = verbose

        if isinstance(acquisition, AcquisitionFunction):
            self.acquisition = acquisition
        else:
            self.acquisition = AcquisitionFunction(acquisition, kappa=kappa, xi=xi)
        self.surrogate = GaussianProcess(kernel=kernel, kernel_params=kernel_params)

        if stopping is None:
            stopping = StoppingPolicy()
        elif isinstance(stopping, Mapping):
            stopping = StoppingPolicy(**stopping)
        self.stopping = stopping

        self.initial_points = self._validate_initial_points(initial_points)

        self.rng = np.random.default_rng(random_state)
        self.history = History(self.domain)
        self.state = OptimizerState.INIT
        self.surrogate_state: SurrogateState | None = None
        self.iteration = 0
        self.initial_done = False
        self.iters_without_improvement = 0
        self.last_utility: float | None = None
        self.stop_reason: str | None = None
        self.run_hash = create_run_hash(self._run_config())
        self._start_time: float | None = None

    def run(self) -> pd.DataFrame:
        """Run optimization procedure with checkpointing.

        Returns:
            DataFrame with one row per successful evaluation
        """
        self._configure_logging()
        self._start_time = time.monotonic()
        self._load_checkpoint_if_exists()

        logger.info("Search domain: %s", self.domain)
        logger.info("Acquisition: %r", self.acquisition)

        run_initial_phase(self)
        run_bayesian_phase(self, self.n_iterations)
        self._log_best()

        return self.score_summary

    def add_iterations(self, n: int) -> pd.DataFrame:
        """Continue the run for ``n`` more iterations.

        The patience counter and the last proposed utility are cleared so
        an earlier early stop does not end the continuation immediately.

        Args:
            n: Number of additional iterations

        Returns:
            Updated score summary
        """
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        if not self.initial_done:
            self.n_iterations = n
            return self.run()

        self._configure_logging()
        self._start_time = time.monotonic()
        self.n_iterations = self.iteration + n
        self.iters_without_improvement = 0
        self.stop_reason = None
        self.last_utility = None

        run_bayesian_phase(self, self.n_iterations)
        self._log_best()

        return self.score_summary

    @property
    def score_summary(self) -> pd.DataFrame:
        return self.history.to_frame()

    @property
    def failure_summary(self) -> pd.DataFrame:
        return self.history.failures_frame()

    @property
    def best_score_trace(self) -> list[float]:
        return self.history.best_score_trace

    @property
    def elapsed(self) -> float:
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    def get_best_params(self) -> tuple[dict[str, Any], float]:
        """Return the best parameter configuration and its score.

        Ties go to the earliest observation.

        Raises:
            ValueError: No successful evaluation yet
        """
        best = self.history.best
        if best is None:
            raise ValueError("No successful evaluations. Run run() first.")
        return dict(best.params), best.score

    def save_checkpoint(self) -> None:
        """Write the state after a completed batch."""
        if not self.checkpoint_dir:
            return

        checkpoint_data = {
            "history": self.history,
            "iteration": self.iteration,
            "initial_done": self.initial_done,
            "iters_without_improvement": self.iters_without_improvement,
            "last_utility": self.last_utility,
            "rng_state": self.rng.bit_generator.state,
        }
        save_checkpoint(checkpoint_data, self.checkpoint_dir, self.run_hash)
        logger.debug("Checkpoint saved at iteration %d", self.iteration)

    def _load_checkpoint_if_exists(self) -> None:
        if not self.checkpoint_dir:
            return

        checkpoint = load_checkpoint(self.checkpoint_dir, self.run_hash)
        if checkpoint:
            self.history = checkpoint["history"]
            self.iteration = checkpoint["iteration"]
            self.initial_done = checkpoint["initial_done"]
            self.iters_without_improvement = checkpoint.get(
                "iters_without_improvement", 0
            )
            self.last_utility = checkpoint.get("last_utility")
            self.rng.bit_generator.state = checkpoint["rng_state"]
            logger.info(
                "Loaded checkpoint with %d results at iteration %d",
                len(self.history),
                self.iteration,
            )

    def _validate_initial_points(self, initial_points) -> list[dict[str, Any]]:
        if initial_points is None:
            return []
        if isinstance(initial_points, pd.DataFrame):
            initial_points = initial_points.to_dict(orient="records")

        points = []
        for params in initial_points:
            if not self.domain.is_in_bounds(params):
                raise ValueError(
                    f"Initial point {dict(params)!r} is outside the search domain "
                    f"{self.domain.to_bounds()}"
                )
            points.append(self.domain.denormalize(self.domain.normalize(params)))
        return points

    def _run_config(self) -> dict:
        return {
            "score_function": _function_identity(self.score_function),
            "bounds": self.domain.to_bounds(),
            "n_initial": self.n_initial,
            "batch_size": self.batch_size,
            "acquisition": repr(self.acquisition),
            "kernel": str(self.surrogate.kernel),
            "kernel_params": self.surrogate.kernel_params,
            "random_state": self.random_state,
            "initial_points": self.initial_points,
        }

    def _configure_logging(self) -> None:
        if self.verbose:
            setup_logger(PACKAGE_LOGGER, level=logging.INFO)
        else:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.WARNING)

    def _log_best(self) -> None:
        best = self.history.best
        if best is None:
            logger.warning("No successful evaluations")
            return
        logger.info("=" * 60)
        logger.info("Best score: %.4f", best.score)
        logger.info("Best params: %s", best.params)
        logger.info("=" * 60)


def _function_identity(func) -> str:
    """Module, qualified name and first line of the scoring function.

    Functions are told apart by where they are defined, not by their body:
    editing a function in place keeps its checkpoint key.
    """
    target = func if hasattr(func, "__qualname__") else type(func)
    code = getattr(target, "__code__", None)
    line = code.co_firstlineno if code is not None else ""
    return f"{target.__module__}.{target.__qualname__}:{line}"
