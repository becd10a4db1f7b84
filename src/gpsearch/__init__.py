"""Gaussian-process Bayesian optimization of black-box scoring functions."""

from .acquisition import AcquisitionFunction
from .domain import Domain, ParameterSpec
from .errors import (
    AcquisitionOptimizationError,
    GPSearchError,
    InvalidBoundsError,
    InvalidObservationError,
    ScoringFailureWarning,
    ScoringFunctionError,
    SurrogateFitError,
)
from .history import FailedEvaluation, History, Observation
from .optimizer import BayesianOptimizer, OptimizerState
from .stopping import StoppingPolicy
from .surrogate import GaussianProcess, SurrogateState

__version__ = "0.1.0"

__all__ = [
    "AcquisitionFunction",
    "AcquisitionOptimizationError",
    "BayesianOptimizer",
    "Domain",
    "FailedEvaluation",
    "GaussianProcess",
    "GPSearchError",
    "History",
    "InvalidBoundsError",
    "InvalidObservationError",
    "Observation",
    "OptimizerState",
    "ParameterSpec",
    "ScoringFailureWarning",
    "ScoringFunctionError",
    "StoppingPolicy",
    "SurrogateFitError",
    "SurrogateState",
]
