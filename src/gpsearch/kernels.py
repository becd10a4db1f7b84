"""Covariance kernels for the Gaussian process surrogate.

Kernels are scikit-learn ``Kernel`` objects: a signal variance
(``ConstantKernel``) times a stationary correlation with one length-scale
per input dimension. scikit-learn gives covariance matrices and their
gradients with respect to the log-hyperparameters, which is what the
marginal likelihood fit needs.
"""

from typing import Mapping

import numpy as np
from sklearn.gaussian_process.kernels import RBF, ConstantKernel, Kernel, Matern

from .config import (
    LENGTH_SCALE,
    LENGTH_SCALE_BOUNDS,
    SIGNAL_VARIANCE,
    SIGNAL_VARIANCE_BOUNDS,
)

KERNELS = ("matern52", "matern32", "rbf")

_ALIASES = {
    "matern52": "matern52",
    "matern": "matern52",
    "matern32": "matern32",
    "rbf": "rbf",
    "se": "rbf",
    "squared_exponential": "rbf",
}


def make_kernel(
    name: str | Kernel,
    dim: int,
    length_scale: float | np.ndarray = LENGTH_SCALE,
    signal_variance: float = SIGNAL_VARIANCE,
    fixed: bool = False,
) -> Kernel:
    """Create a kernel with per-dimension length-scales.

    Args:
        name: Kernel family ("matern52", "matern32", "rbf") or a ready kernel
        dim: Number of input dimensions
        length_scale: Initial (or fixed) length-scale(s)
        signal_variance: Initial (or fixed) signal variance
        fixed: If True, hyperparameters are excluded from likelihood fitting

    Returns:
        scikit-learn kernel
    """
    if isinstance(name, Kernel):
        return name

    key = _ALIASES.get(str(name).lower())
    if key is None:
        raise ValueError(f"Unknown kernel {name!r}. Available: {list(KERNELS)}")

    length_scale = np.broadcast_to(
        np.asarray(length_scale, dtype=float), (dim,)
    ).copy()
    ls_bounds = "fixed" if fixed else LENGTH_SCALE_BOUNDS
    var_bounds = "fixed" if fixed else SIGNAL_VARIANCE_BOUNDS

    if key == "rbf":
        correlation = RBF(length_scale=length_scale, length_scale_bounds=ls_bounds)
    else:
        nu = 2.5 if key == "matern52" else 1.5
        correlation = Matern(
            length_scale=length_scale, length_scale_bounds=ls_bounds, nu=nu
        )

    return (
        ConstantKernel(
            constant_value=float(signal_variance), constant_value_bounds=var_bounds
        )
        * correlation
    )


def fixed_kernel(name: str | Kernel, dim: int, params: Mapping[str, float]) -> Kernel:
    """Kernel with hyperparameters pinned to ``params``."""
    unknown = set(params) - {"length_scale", "signal_variance", "noise_variance"}
    if unknown:
        raise ValueError(f"Unknown kernel parameters: {sorted(unknown)}")
    if isinstance(name, Kernel):
        # Pin every hyperparameter of a user kernel at its current value
        return name.clone_with_theta(name.theta).set_params(
            **{
                f"{h.name}_bounds": "fixed"
                for h in name.hyperparameters
                if not h.fixed
            }
        )
    return make_kernel(
        name,
        dim,
        length_scale=params.get("length_scale", LENGTH_SCALE),
        signal_variance=params.get("signal_variance", SIGNAL_VARIANCE),
        fixed=True,
    )


def kernel_summary(kernel: Kernel) -> dict[str, float | list[float]]:
    """Readable hyperparameters of a fitted kernel."""
    summary: dict[str, float | list[float]] = {}
    params = kernel.get_params()
    for key, value in params.items():
        if key.endswith("constant_value"):
            summary["signal_variance"] = float(value)
        elif key.endswith("length_scale"):
            summary["length_scale"] = np.atleast_1d(value).astype(float).tolist()
    return summary
