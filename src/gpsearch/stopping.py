"""Halting rules checked between optimization iterations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoppingPolicy:
    """Optional early-stopping criteria; all disabled by default.

    Attributes:
        target_score: Stop once the best score reaches this value
        patience: Stop after this many consecutive iterations without a
            new best score
        time_limit: Wall-clock budget in seconds for the whole run
        min_utility: Stop when the best proposed acquisition value drops
            below this threshold
    """

    target_score: float | None = None
    patience: int | None = None
    time_limit: float | None = None
    min_utility: float | None = None

    def __post_init__(self) -> None:
        if self.patience is not None and self.patience < 1:
            raise ValueError(f"patience must be >= 1, got {self.patience}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")

    def should_stop(
        self,
        best_score: float | None,
        iters_without_improvement: int,
        elapsed: float,
        last_utility: float | None = None,
    ) -> str | None:
        """Return the reason to stop, or None to keep going."""
        if (
            self.target_score is not None
            and best_score is not None
            and best_score >= self.target_score
        ):
            return f"target score {self.target_score} reached ({best_score:.4f})"
        if self.patience is not None and iters_without_improvement >= self.patience:
            return f"no improvement for {iters_without_improvement} iterations"
        if self.time_limit is not None and elapsed >= self.time_limit:
            return f"time limit of {self.time_limit}s exceeded ({elapsed:.1f}s)"
        if (
            self.min_utility is not None
            and last_utility is not None
            and last_utility < self.min_utility
        ):
            return f"best utility {last_utility:.3g} below {self.min_utility}"
        return None
