"""Bounded search domain and unit-hypercube scaling."""

import math
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Literal, Mapping, Sequence

import numpy as np
from scipy.stats import qmc

from .errors import InvalidBoundsError

ParamKind = Literal["continuous", "integer"]
SampleMethod = Literal["lhs", "random"]


@dataclass(frozen=True)
class ParameterSpec:
    """One bounded scalar parameter.

    Example:
      - ParameterSpec("learning_rate", "continuous", 1e-4, 1e-1)
      - ParameterSpec("max_depth", "integer", 2, 12)
    """

    name: str
    kind: ParamKind
    lower: float
    upper: float

    def __post_init__(self) -> None:
        if self.kind not in ("continuous", "integer"):
            raise InvalidBoundsError(
                f"Unknown kind {self.kind!r} for parameter {self.name!r}"
            )
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise InvalidBoundsError(
                f"Bounds for {self.name!r} must be finite, got "
                f"({self.lower}, {self.upper})"
            )
        if self.lower >= self.upper:
            raise InvalidBoundsError(
                f"Lower bound must be below upper bound for {self.name!r}, got "
                f"({self.lower}, {self.upper})"
            )
        if self.kind == "integer" and not (
            float(self.lower).is_integer() and float(self.upper).is_integer()
        ):
            raise InvalidBoundsError(
                f"Integer parameter {self.name!r} needs whole-number bounds, got "
                f"({self.lower}, {self.upper})"
            )

    @property
    def width(self) -> float:
        return float(self.upper) - float(self.lower)

    def to_unit(self, value: float) -> float:
        return (float(value) - float(self.lower)) / self.width

    def from_unit(self, u: float) -> float | int:
        u = min(1.0, max(0.0, float(u)))
        value = float(self.lower) + u * self.width
        if self.kind == "integer":
            value = int(round(value))
            return int(min(int(self.upper), max(int(self.lower), value)))
        return float(min(float(self.upper), max(float(self.lower), value)))

    def contains(self, value) -> bool:
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        v = float(value)
        if not math.isfinite(v):
            return False
        if self.kind == "integer" and not v.is_integer():
            return False
        return float(self.lower) <= v <= float(self.upper)


class Domain:
    """Ordered, immutable set of bounded parameters.

    The surrogate works on the unit hypercube ``[0, 1]^d``; ``normalize`` and
    ``denormalize`` convert between that space and parameter dictionaries.
    Integer parameters are rounded on the way back.
    """

    def __init__(self, specs: Sequence[ParameterSpec]) -> None:
        specs = tuple(specs)
        if not specs:
            raise InvalidBoundsError("Domain must have at least one parameter.")
        names = [s.name for s in specs]
        if len(set(names)) != len(names):
            raise InvalidBoundsError(f"Duplicate parameter names in domain: {names!r}")
        self._specs = specs
        self._lower = np.array([float(s.lower) for s in specs])
        self._width = np.array([s.width for s in specs])
        self._integer_mask = np.array([s.kind == "integer" for s in specs])

    @classmethod
    def from_bounds(cls, bounds: Mapping[str, Sequence[float]]) -> "Domain":
        """Build a domain from ``{name: (lower, upper)}``.

        A pair of Python ints marks an integer parameter, anything else is
        continuous.

        Args:
            bounds: Parameter bounds keyed by name

        Returns:
            Domain with parameters in mapping order
        """
        if isinstance(bounds, Domain):
            return bounds
        specs = []
        for name, pair in bounds.items():
            try:
                lower, upper = pair
            except (TypeError, ValueError) as e:
                raise InvalidBoundsError(
                    f"Bounds for {name!r} must be a (lower, upper) pair, got {pair!r}"
                ) from e
            if not all(
                isinstance(b, Real) and not isinstance(b, bool) for b in (lower, upper)
            ):
                raise InvalidBoundsError(
                    f"Bounds for {name!r} must be numbers, got {pair!r}"
                )
            is_int = isinstance(lower, Integral) and isinstance(upper, Integral)
            specs.append(
                ParameterSpec(
                    name=str(name),
                    kind="integer" if is_int else "continuous",
                    lower=int(lower) if is_int else float(lower),
                    upper=int(upper) if is_int else float(upper),
                )
            )
        return cls(specs)

    @property
    def specs(self) -> tuple[ParameterSpec, ...]:
        return self._specs

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._specs]

    @property
    def dim(self) -> int:
        return len(self._specs)

    @property
    def integer_mask(self) -> np.ndarray:
        return self._integer_mask.copy()

    @property
    def unit_steps(self) -> np.ndarray:
        """Unit-space length of one integer step (0 for continuous parameters)."""
        return np.where(self._integer_mask, 1.0 / self._width, 0.0)

    def to_bounds(self) -> dict[str, tuple[float, float]]:
        return {s.name: (s.lower, s.upper) for s in self._specs}

    def normalize(self, params: Mapping[str, float]) -> np.ndarray:
        """Convert a parameter dictionary into a unit-hypercube vector."""
        missing = [n for n in self.names if n not in params]
        if missing:
            raise KeyError(f"Missing parameters {missing!r}")
        values = np.array([float(params[n]) for n in self.names])
        return (values - self._lower) / self._width

    def normalize_many(self, params_list: Sequence[Mapping[str, float]]) -> np.ndarray:
        if not params_list:
            return np.empty((0, self.dim))
        return np.vstack([self.normalize(p) for p in params_list])

    def denormalize(self, unit: Sequence[float]) -> dict[str, float | int]:
        """Convert a unit-hypercube vector back into a parameter dictionary."""
        unit = np.asarray(unit, dtype=float).ravel()
        if unit.shape[0] != self.dim:
            raise ValueError(
                f"Vector length {unit.shape[0]} does not match domain dim {self.dim}"
            )
        return {s.name: s.from_unit(u) for s, u in zip(self._specs, unit)}

    def snap(self, unit: Sequence[float]) -> np.ndarray:
        """Clip to the hypercube and round integer dimensions onto their grid."""
        return self.normalize(self.denormalize(unit))

    def is_in_bounds(self, params: Mapping[str, float]) -> bool:
        for s in self._specs:
            if s.name not in params or not s.contains(params[s.name]):
                return False
        return True

    def sample_unit(
        self, n: int, rng: np.random.Generator, method: SampleMethod = "lhs"
    ) -> np.ndarray:
        """Draw ``n`` snapped points in unit space.

        Args:
            n: Number of samples
            rng: Random generator owned by the caller
            method: "lhs" for Latin hypercube, "random" for uniform draws

        Returns:
            Array of shape (n, dim)
        """
        if n <= 0:
            return np.empty((0, self.dim))
        if method == "lhs":
            sampler = qmc.LatinHypercube(d=self.dim, rng=rng)
            samples = sampler.random(n=n)
        elif method == "random":
            samples = rng.uniform(0.0, 1.0, size=(n, self.dim))
        else:
            raise ValueError(f"Unknown sampling method {method!r}")
        return np.vstack([self.snap(s) for s in samples])

    def sample_uniform(
        self, n: int, rng: np.random.Generator, method: SampleMethod = "lhs"
    ) -> list[dict[str, float | int]]:
        """Generate parameter samples respecting bounds and integer rounding.

        Args:
            n: Number of samples
            rng: Random generator owned by the caller
            method: "lhs" for Latin hypercube, "random" for uniform draws

        Returns:
            List of parameter dictionaries
        """
        return [self.denormalize(u) for u in self.sample_unit(n, rng, method)]

    def __repr__(self) -> str:
        inner = ", ".join(
            f"{s.name}:{s.kind}[{s.lower}, {s.upper}]" for s in self._specs
        )
        return f"Domain({inner})"
