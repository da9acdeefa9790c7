"""
Descriptive statistics for latency samples.

Quartiles use numpy's default "linear" quantile method
(Hyndman & Fan type 7), applied to every sample the same way.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

import numpy as np


class InvalidInputError(ValueError):
    """Raised when a statistic is requested for unusable input."""


class Quartiles(NamedTuple):
    """Five-number summary: minimum, Q1, median, Q3, maximum."""

    q0: float
    q1: float
    q2: float
    q3: float
    q4: float


@dataclass(frozen=True)
class Metrics:
    """Statistics derived from a non-empty latency sample (milliseconds)."""

    count: int
    mean: float
    variance: float
    std_dev: float
    std_err: float
    quartiles: Quartiles
    iqr: float

    @property
    def min(self) -> float:
        return self.quartiles.q0

    @property
    def max(self) -> float:
        return self.quartiles.q4

    @property
    def median(self) -> float:
        return self.quartiles.q2

    @property
    def upper_bound(self) -> float:
        """Conservative point estimate, mean plus three standard deviations."""
        return self.mean + 3.0 * self.std_dev

    def to_dict(self) -> dict:
        """Convert to the statistics block of the report."""
        return {
            "count": self.count,
            "mean": self.mean,
            "std_dev": self.std_dev,
            "std_err": self.std_err,
            "quartiles": list(self.quartiles),
            "iqr": self.iqr,
        }

    def __str__(self) -> str:
        return (
            f"Metrics {{ Mean = {self.mean:.2f}, StdDev = {self.std_dev:.2f}, "
            f"Error = {self.std_err:.2f}, Count = {self.count} }}"
        )


def compute_metrics(values: Sequence[float]) -> Metrics:
    """Compute count, mean, Bessel-corrected variance and quartiles.

    Raises:
        InvalidInputError: if ``values`` is empty.
    """
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        raise InvalidInputError("Cannot compute metrics of an empty sample")

    count = int(data.size)
    mean = float(data.mean())
    variance = 0.0 if count == 1 else float(data.var(ddof=1))
    std_dev = math.sqrt(variance)
    std_err = std_dev / math.sqrt(count)

    # accumulate guards against last-ulp reordering from interpolation
    estimates = np.maximum.accumulate(np.percentile(data, [0, 25, 50, 75, 100]))
    q0, q1, q2, q3, q4 = (float(q) for q in estimates)
    quartiles = Quartiles(q0, q1, q2, q3, q4)

    return Metrics(
        count=count,
        mean=mean,
        variance=variance,
        std_dev=std_dev,
        std_err=std_err,
        quartiles=quartiles,
        iqr=q3 - q1,
    )
