"""
Statistical analysis of latency samples.

Provides descriptive metrics, rank-based equivalence testing, endpoint
ranking and histogram feeds.
"""

from .metrics import (
    InvalidInputError,
    Metrics,
    Quartiles,
    compute_metrics,
)

from .equivalence import (
    DEFAULT_EQUIVALENCE,
    ComparisonResult,
    EquivalenceTester,
    SampleEquivalence,
    Threshold,
)

from .ranking import (
    HEURISTICS,
    Ordering,
    ResultComparator,
    compare_results,
    get_ranks_ordered,
    rank_results,
    sort_results,
)

from .histograms import (
    DensityBin,
    DensityHistogram,
    Histogram,
    HistogramBin,
    build_histogram,
    build_quartile_histogram,
    histogram_feed,
    to_triples,
)

__all__ = [
    # Metrics
    "InvalidInputError",
    "Metrics",
    "Quartiles",
    "compute_metrics",
    # Equivalence
    "DEFAULT_EQUIVALENCE",
    "ComparisonResult",
    "EquivalenceTester",
    "SampleEquivalence",
    "Threshold",
    # Ranking
    "HEURISTICS",
    "Ordering",
    "ResultComparator",
    "compare_results",
    "get_ranks_ordered",
    "rank_results",
    "sort_results",
    # Histograms
    "DensityBin",
    "DensityHistogram",
    "Histogram",
    "HistogramBin",
    "build_histogram",
    "build_quartile_histogram",
    "histogram_feed",
    "to_triples",
]
