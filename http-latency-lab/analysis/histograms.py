"""
Histogram feed for rendering collaborators.

Two histogram shapes are produced per sample: a plain count histogram and a
quartile density histogram. Renderers only see them through two small
protocols, a bin exposing lower/upper/height and a histogram exposing its
bins, so either shape converts to (lower, upper, height) triples the same way.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np

from .metrics import InvalidInputError, Metrics


BinTriple = tuple[float, float, float]


class BinLike(Protocol):
    @property
    def lower(self) -> float: ...

    @property
    def upper(self) -> float: ...

    @property
    def height(self) -> float: ...


class HistogramLike(Protocol):
    @property
    def bins(self) -> Sequence[BinLike]: ...


@dataclass(frozen=True)
class HistogramBin:
    """Count of values falling in [lower, upper)."""

    lower: float
    upper: float
    count: int

    @property
    def height(self) -> float:
        return float(self.count)


@dataclass(frozen=True)
class DensityBin:
    """Probability density over [lower, upper)."""

    lower: float
    upper: float
    height: float


@dataclass(frozen=True)
class Histogram:
    bins: tuple[HistogramBin, ...]


@dataclass(frozen=True)
class DensityHistogram:
    bins: tuple[DensityBin, ...]


def build_histogram(values: Sequence[float]) -> Histogram:
    """Count histogram with numpy's "auto" bin width estimator."""
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        raise InvalidInputError("Cannot build a histogram of an empty sample")

    counts, edges = np.histogram(data, bins="auto")
    bins = tuple(
        HistogramBin(lower=float(edges[i]), upper=float(edges[i + 1]), count=int(count))
        for i, count in enumerate(counts)
    )
    return Histogram(bins=bins)


def build_quartile_histogram(metrics: Metrics) -> DensityHistogram:
    """Density histogram with one bin per quarter of the sample.

    Each quarter holds 25% of the mass, so a bin's height is 0.25 divided by
    its width. Zero-width quarters are folded into their neighbour.
    """
    q = metrics.quartiles
    edges = [q.q0, q.q1, q.q2, q.q3, q.q4]
    if q.q4 == q.q0:
        return DensityHistogram(bins=(DensityBin(lower=q.q0, upper=q.q4, height=1.0),))

    bins: list[DensityBin] = []
    mass = 0.0
    lower = edges[0]
    for upper in edges[1:]:
        mass += 0.25
        if upper == lower:
            continue
        bins.append(DensityBin(lower=lower, upper=upper, height=mass / (upper - lower)))
        lower = upper
        mass = 0.0

    if mass and bins:
        last = bins[-1]
        total = last.height * (last.upper - last.lower) + mass
        bins[-1] = DensityBin(lower=last.lower, upper=last.upper, height=total / (last.upper - last.lower))

    return DensityHistogram(bins=tuple(bins))


def to_triples(histogram: HistogramLike) -> list[BinTriple]:
    return [(b.lower, b.upper, b.height) for b in histogram.bins]


def histogram_feed(values: Sequence[float], metrics: Metrics) -> dict[str, list[BinTriple]]:
    """Both histogram shapes of one sample as bin triples."""
    return {
        "histogram": to_triples(build_histogram(values)),
        "quartiles": to_triples(build_quartile_histogram(metrics)),
    }
