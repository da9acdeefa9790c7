"""
Ordering and ranking of benchmarked endpoints.

Endpoints are sorted by a comparator that first tries cheap separability
heuristics over their metrics, then a rank-sum test over the raw samples,
and finally a conservative point estimate. Ranks are then assigned with
standard competition ranking ("1224" ranking, 0-based) where neighbours
count as tied when the equivalence predicate cannot tell them apart.
"""

import functools
from enum import IntEnum
from typing import Callable, Optional, Protocol, Sequence, TypeVar

from .equivalence import (
    DEFAULT_EQUIVALENCE,
    P05,
    ComparisonResult,
    EquivalenceTester,
    SampleEquivalence,
    Threshold,
)
from .metrics import Metrics


T = TypeVar("T")


class Ordering(IntEnum):
    """Decision of a single comparison step."""

    LESS_THAN = -1
    UNDETERMINED = 0
    GREATER_THAN = 1


class Rankable(Protocol):
    """Anything carrying a latency sample and its metrics."""

    @property
    def sample(self) -> Sequence[float]: ...

    @property
    def metrics(self) -> Optional[Metrics]: ...


def is_less_by_range(x: Metrics, y: Metrics) -> bool:
    return x.max < y.min


def is_less_by_tukey(x: Metrics, y: Metrics) -> bool:
    return x.quartiles.q3 + 1.5 * x.iqr < y.quartiles.q1 - 1.5 * y.iqr


def is_less_by_three_sigma(x: Metrics, y: Metrics) -> bool:
    return x.mean + 3.0 * x.std_dev < y.mean - 3.0 * y.std_dev


def _separates(is_less: Callable[[Metrics, Metrics], bool]) -> Callable[[Metrics, Metrics], Ordering]:
    """Turn a one-directional "clearly less" check into a decision step."""

    @functools.wraps(is_less)
    def decide(x: Metrics, y: Metrics) -> Ordering:
        if is_less(x, y):
            return Ordering.LESS_THAN
        if is_less(y, x):
            return Ordering.GREATER_THAN
        return Ordering.UNDETERMINED

    return decide


by_range = _separates(is_less_by_range)
by_tukey = _separates(is_less_by_tukey)
by_three_sigma = _separates(is_less_by_three_sigma)

# Evaluated in order until one decides. None of them ever asserts equality.
HEURISTICS: tuple[Callable[[Metrics, Metrics], Ordering], ...] = (
    by_range,
    by_tukey,
    by_three_sigma,
)


def decide_by_heuristics(x: Metrics, y: Metrics) -> Ordering:
    for heuristic in HEURISTICS:
        ordering = heuristic(x, y)
        if ordering is not Ordering.UNDETERMINED:
            return ordering
    return Ordering.UNDETERMINED


class ResultComparator:
    """Three-way comparator over rankable endpoint results."""

    def __init__(
        self,
        tester: Optional[EquivalenceTester] = None,
        significance_level: float = P05,
    ):
        self.tester = tester or EquivalenceTester()
        self.significance_level = significance_level

    def __call__(self, x: Rankable, y: Rankable) -> int:
        return int(self.compare(x, y))

    def compare(self, x: Rankable, y: Rankable) -> Ordering:
        x_metrics, y_metrics = x.metrics, y.metrics
        if x_metrics is None and y_metrics is None:
            return Ordering.UNDETERMINED
        if x_metrics is None:
            return Ordering.GREATER_THAN
        if y_metrics is None:
            return Ordering.LESS_THAN

        ordering = decide_by_heuristics(x_metrics, y_metrics)
        if ordering is not Ordering.UNDETERMINED:
            return ordering

        result = self.tester.perform(x.sample, y.sample, Threshold.zero(), self.significance_level)
        if result is ComparisonResult.LESSER:
            return Ordering.LESS_THAN
        if result is ComparisonResult.GREATER:
            return Ordering.GREATER_THAN

        return _compare_values(x_metrics.upper_bound, y_metrics.upper_bound)


def _compare_values(a: float, b: float) -> Ordering:
    if a < b:
        return Ordering.LESS_THAN
    if a > b:
        return Ordering.GREATER_THAN
    return Ordering.UNDETERMINED


def compare_results(x: Rankable, y: Rankable) -> int:
    """Compare two endpoint results with the default comparator."""
    return _DEFAULT_COMPARATOR(x, y)


def sort_results(results: Sequence[T], comparator: Optional[ResultComparator] = None) -> list[T]:
    """Stable sort, fastest endpoint first, endpoints without samples last."""
    comparator = comparator or _DEFAULT_COMPARATOR
    return sorted(results, key=functools.cmp_to_key(comparator))


def get_ranks_ordered(ordered_items: Sequence[T], equals: Callable[[T, T], bool]) -> list[int]:
    """Standard competition ranks of an already ordered sequence.

    Example:
        >>> get_ranks_ordered([90, 95, 95, 100, 101, 101, 101, 105], operator.eq)
        [0, 1, 1, 3, 4, 4, 4, 7]
    """
    ranks: list[int] = []
    for i, item in enumerate(ordered_items):
        if i > 0 and equals(item, ordered_items[i - 1]):
            ranks.append(ranks[i - 1])
        else:
            ranks.append(i)
    return ranks


def rank_results(
    results: Sequence[T],
    comparator: Optional[ResultComparator] = None,
    equivalence: Optional[SampleEquivalence] = None,
) -> tuple[list[T], list[int]]:
    """Sort results and compute their ranks.

    Returns:
        The sorted results and a parallel list of ranks.
    """
    equivalence = equivalence or DEFAULT_EQUIVALENCE
    ordered = sort_results(results, comparator)
    ranks = get_ranks_ordered(ordered, lambda a, b: equivalence.equals(a.sample, b.sample))
    return ordered, ranks


_DEFAULT_COMPARATOR = ResultComparator()
