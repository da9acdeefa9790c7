"""
Rank-based equivalence testing of two latency samples.

Uses the one-sided Mann-Whitney U test from scipy in both directions: a
sample is Greater when the test rejects "x is not larger than y shifted by
the threshold", Lesser in the mirrored case, and Indistinguishable when
neither direction can be rejected.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np
from scipy import stats

from .metrics import InvalidInputError


# Samples up to this size use the exact null distribution of U.
EXACT_SAMPLE_LIMIT = 50

P05 = 0.05
P1E3 = 1e-3
P1E4 = 1e-4


class ComparisonResult(Enum):
    """Outcome of comparing sample x against sample y."""

    LESSER = "lesser"
    INDISTINGUISHABLE = "indistinguishable"
    GREATER = "greater"

    def reversed(self) -> "ComparisonResult":
        if self is ComparisonResult.LESSER:
            return ComparisonResult.GREATER
        if self is ComparisonResult.GREATER:
            return ComparisonResult.LESSER
        return self


@dataclass(frozen=True)
class Threshold:
    """Minimum meaningful effect size.

    ``absolute`` is a shift in milliseconds, ``relative`` a fraction of each
    value (0.02 means 2%).
    """

    absolute: float = 0.0
    relative: float = 0.0

    def __post_init__(self):
        if self.absolute < 0 or self.relative < 0:
            raise ValueError("Threshold must be non-negative")

    @classmethod
    def zero(cls) -> "Threshold":
        return cls()

    @classmethod
    def percent(cls, value: float) -> "Threshold":
        return cls(relative=value / 100.0)

    @property
    def is_zero(self) -> bool:
        return self.absolute == 0.0 and self.relative == 0.0

    def apply(self, values: np.ndarray) -> np.ndarray:
        """Shift values upwards by the threshold."""
        if self.is_zero:
            return values
        return values * (1.0 + self.relative) + self.absolute


class EquivalenceTester:
    """Two one-sided Mann-Whitney tests combined into a three-way result."""

    def __init__(self, exact_sample_limit: int = EXACT_SAMPLE_LIMIT):
        self.exact_sample_limit = exact_sample_limit

    def perform(
        self,
        x: Sequence[float],
        y: Sequence[float],
        threshold: Optional[Threshold] = None,
        significance_level: float = P05,
    ) -> ComparisonResult:
        """Compare x against y.

        Args:
            x: First sample
            y: Second sample
            threshold: Minimum meaningful difference (defaults to zero)
            significance_level: Probability of a false rejection, in (0, 1)
        """
        threshold = threshold or Threshold.zero()
        if not 0.0 < significance_level < 1.0:
            raise InvalidInputError(f"Significance level must be in (0, 1), got {significance_level}")

        xs = np.asarray(x, dtype=float)
        ys = np.asarray(y, dtype=float)
        if xs.size == 0 or ys.size == 0:
            raise InvalidInputError("Cannot compare empty samples")

        is_greater = self._rejects(xs, threshold.apply(ys), significance_level)
        is_lesser = self._rejects(ys, threshold.apply(xs), significance_level)

        # Both directions rejecting counts as undecided.
        if is_greater and not is_lesser:
            return ComparisonResult.GREATER
        if is_lesser and not is_greater:
            return ComparisonResult.LESSER
        return ComparisonResult.INDISTINGUISHABLE

    def p_value_greater(self, x: np.ndarray, y: np.ndarray) -> float:
        """P-value of the one-sided test "x is stochastically greater than y"."""
        combined = np.concatenate([x, y])
        if np.all(combined == combined[0]):
            return 1.0

        method = "exact" if max(x.size, y.size) <= self.exact_sample_limit else "asymptotic"
        with np.errstate(invalid="ignore", divide="ignore"):
            result = stats.mannwhitneyu(x, y, alternative="greater", method=method)
        p_value = float(result.pvalue)
        if np.isnan(p_value):
            return 1.0
        return p_value

    def _rejects(self, x: np.ndarray, y: np.ndarray, significance_level: float) -> bool:
        return self.p_value_greater(x, y) < significance_level


class SampleEquivalence:
    """Pairwise "are these samples indistinguishable" predicate.

    Not transitive: a ~ b and b ~ c does not imply a ~ c. Only use it to
    compare neighbours.
    """

    def __init__(
        self,
        tester: Optional[EquivalenceTester] = None,
        threshold: Optional[Threshold] = None,
        significance_level: float = P1E3,
    ):
        self.tester = tester or EquivalenceTester()
        self.threshold = threshold if threshold is not None else Threshold.percent(2)
        self.significance_level = significance_level

    def __call__(self, x: Optional[Sequence[float]], y: Optional[Sequence[float]]) -> bool:
        return self.equals(x, y)

    def equals(self, x: Optional[Sequence[float]], y: Optional[Sequence[float]]) -> bool:
        if x is y:
            return True
        if _is_empty(x) or _is_empty(y):
            # Two missing samples tie; a missing sample never ties a real one.
            return _is_empty(x) and _is_empty(y)

        result = self.tester.perform(x, y, self.threshold, self.significance_level)
        return result is ComparisonResult.INDISTINGUISHABLE


def _is_empty(sample: Optional[Sequence[float]]) -> bool:
    return sample is None or len(sample) == 0


DEFAULT_EQUIVALENCE = SampleEquivalence()
