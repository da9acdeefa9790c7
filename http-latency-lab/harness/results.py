"""
Result containers produced by a benchmark run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from analysis.histograms import BinTriple, histogram_feed
from analysis.metrics import Metrics, compute_metrics
from instrumentation.timing import RequestAttempt


@dataclass(frozen=True)
class Endpoint:
    """A validated absolute URL and its position among the project's URLs."""

    index: int
    uri: str


@dataclass(frozen=True)
class EndpointResult:
    """Everything collected for one endpoint."""

    endpoint: Endpoint
    attempts: tuple[RequestAttempt, ...] = ()
    sample: tuple[float, ...] = ()
    metrics: Optional[Metrics] = None

    @classmethod
    def from_attempts(cls, endpoint: Endpoint, attempts: list[RequestAttempt]) -> "EndpointResult":
        """Build the sample from successful attempts, in attempt order."""
        successes = sorted(
            (a for a in attempts if a.succeeded),
            key=lambda a: a.attempt_index,
        )
        sample = tuple(a.duration_ms for a in successes)
        metrics = compute_metrics(sample) if sample else None
        return cls(endpoint=endpoint, attempts=tuple(attempts), sample=sample, metrics=metrics)

    @property
    def index(self) -> int:
        return self.endpoint.index

    @property
    def uri(self) -> str:
        return self.endpoint.uri

    @property
    def success_count(self) -> int:
        return len(self.sample)

    @property
    def failure_count(self) -> int:
        return len(self.attempts) - len(self.sample)

    def to_dict(self) -> dict:
        """Per-endpoint block of the report."""
        return {
            "index": self.index,
            "uri": self.uri,
            "statistics": self.metrics.to_dict() if self.metrics else None,
        }

    def histograms(self) -> Optional[dict[str, list[BinTriple]]]:
        """Bin triples for rendering, or None without a sample."""
        if self.metrics is None:
            return None
        return histogram_feed(self.sample, self.metrics)

    def __str__(self) -> str:
        return (
            f"EndpointResult {{ Index = {self.index}, Uri = {self.uri}, "
            f"Attempts = {len(self.attempts)}, Successes = {self.success_count} }}"
        )


@dataclass(frozen=True)
class ProjectResult:
    """Ranked results of a whole run.

    ``results`` is in benchmark order (fastest first) and ``ranks[i]`` is the
    rank of ``results[i]``.
    """

    results: tuple[EndpointResult, ...]
    ranks: tuple[int, ...]
    start_time: datetime
    end_time: datetime
    output_directory: Optional[Path] = None
    cancelled: bool = False
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if len(self.results) != len(self.ranks):
            raise ValueError("ranks must be parallel to results")

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        """The report artifact handed to persistence collaborators."""
        return {
            "uri_reports": [r.to_dict() for r in self.results],
            "ranks": list(self.ranks),
            "output_directory": str(self.output_directory) if self.output_directory else None,
        }

    def histograms(self) -> dict[int, dict[str, list[BinTriple]]]:
        """Histogram feed keyed by endpoint index, for endpoints with a sample."""
        feed = {}
        for result in self.results:
            bins = result.histograms()
            if bins is not None:
                feed[result.index] = bins
        return feed
