"""
Benchmark orchestrator for HTTP latency runs.

Samples each endpoint in turn through a RequestSampler, isolates per-endpoint
failures, aggregates progress and ranks the collected results.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union
from urllib.parse import urlsplit

from analysis.equivalence import SampleEquivalence
from analysis.ranking import ResultComparator, rank_results
from instrumentation.traces import Tracer, get_tracer
from instrumentation.transport import Transport

from .progress import FailureCallback, FailureNotice, ProgressCallback, ProgressTracker
from .results import Endpoint, EndpointResult, ProjectResult
from .sampler import (
    DEFAULT_ATTEMPT_COUNT,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_WARMUP_MAX_ATTEMPTS,
    DEFAULT_WARMUP_MIN_ATTEMPTS,
    RequestSampler,
)

logger = logging.getLogger(__name__)


DEFAULT_OUTPUT_ROOT = Path.home() / "Documents" / "http-latency-lab"

ENV_PREFIX = "LATENCY_LAB_"


@dataclass
class BenchmarkConfig:
    """Configuration for a benchmark run."""

    num_attempts: int = DEFAULT_ATTEMPT_COUNT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    warmup_min_attempts: int = DEFAULT_WARMUP_MIN_ATTEMPTS
    warmup_max_attempts: int = DEFAULT_WARMUP_MAX_ATTEMPTS
    request_timeout_seconds: float = 30.0
    output_root: Optional[Path] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.num_attempts < 1:
            raise ValueError(f"num_attempts must be >= 1, got {self.num_attempts}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if not 0 <= self.warmup_min_attempts <= self.warmup_max_attempts:
            raise ValueError(
                "warmup attempts must satisfy 0 <= min <= max, got "
                f"min={self.warmup_min_attempts}, max={self.warmup_max_attempts}"
            )
        if self.request_timeout_seconds <= 0:
            raise ValueError(
                f"request_timeout_seconds must be positive, got {self.request_timeout_seconds}"
            )
        if self.output_root is not None:
            self.output_root = Path(self.output_root)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "BenchmarkConfig":
        """Build a config from LATENCY_LAB_* variables, then apply overrides.

        Overrides whose value is None are ignored, so parsed CLI arguments can
        be passed straight through.
        """
        environ = os.environ if environ is None else environ
        values: dict = {}

        def read(name: str, key: str, convert) -> None:
            raw = environ.get(ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                return
            try:
                values[key] = convert(raw.strip())
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from e

        read("ATTEMPTS", "num_attempts", int)
        read("CONCURRENCY", "max_concurrency", int)
        read("WARMUP_MIN", "warmup_min_attempts", int)
        read("WARMUP_MAX", "warmup_max_attempts", int)
        read("TIMEOUT", "request_timeout_seconds", float)
        read("OUTPUT_ROOT", "output_root", Path)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "num_attempts": self.num_attempts,
            "max_concurrency": self.max_concurrency,
            "warmup_min_attempts": self.warmup_min_attempts,
            "warmup_max_attempts": self.warmup_max_attempts,
            "request_timeout_seconds": self.request_timeout_seconds,
            "output_root": str(self.output_root) if self.output_root else None,
            "metadata": self.metadata,
        }


def parse_endpoints(urls: Optional[Iterable[str]]) -> list[Endpoint]:
    """Keep the absolute URLs, indexed in order of the surviving entries.

    Anything without both a scheme and a network location is dropped silently.
    """
    endpoints: list[Endpoint] = []
    for raw in urls or ():
        if not isinstance(raw, str):
            continue
        candidate = raw.strip()
        try:
            parts = urlsplit(candidate)
        except ValueError:
            continue
        if not parts.scheme or not parts.netloc:
            continue
        endpoints.append(Endpoint(index=len(endpoints), uri=candidate))
    return endpoints


def resolve_output_directory(
    output_root: Optional[Union[str, Path]],
    start_time: Optional[datetime] = None,
) -> Path:
    """Per-run directory name: <root>/<day-of-year>_<HH-MM-SS>."""
    start_time = start_time or datetime.now()
    root = Path(output_root) if output_root else DEFAULT_OUTPUT_ROOT
    return root / f"{start_time.timetuple().tm_yday}_{start_time.strftime('%H-%M-%S')}"


class BenchmarkRunner:
    """Orchestrates sampling of every endpoint and the final ranking."""

    def __init__(
        self,
        transport: Transport,
        config: Optional[BenchmarkConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_failure: Optional[FailureCallback] = None,
        verbose: bool = True,
        tracer: Optional[Tracer] = None,
        comparator: Optional[ResultComparator] = None,
        equivalence: Optional[SampleEquivalence] = None,
    ):
        self.transport = transport
        self.config = config or BenchmarkConfig()
        self.on_progress = on_progress
        self.on_failure = on_failure
        self.verbose = verbose
        self.tracer = tracer or get_tracer()
        self.comparator = comparator
        self.equivalence = equivalence

    def create_sampler(self, endpoint: Endpoint, progress: ProgressTracker) -> RequestSampler:
        return RequestSampler(
            endpoint,
            self.transport,
            num_attempts=self.config.num_attempts,
            max_concurrency=self.config.max_concurrency,
            warmup_min_attempts=self.config.warmup_min_attempts,
            warmup_max_attempts=self.config.warmup_max_attempts,
            on_tick=progress.tick,
            on_failure=self._notify,
            tracer=self.tracer,
        )

    async def run(
        self,
        targets: Sequence[Union[str, Endpoint]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProjectResult:
        """Sample every endpoint one at a time and rank the results.

        Args:
            targets: URL strings (filtered through parse_endpoints) or
                already validated endpoints
            cancel_event: Set to stop gracefully; data collected so far is
                still ranked

        Endpoints not yet started when cancellation is requested are left out
        of the result.
        """
        cancel_event = cancel_event or asyncio.Event()
        endpoints = self._endpoints(targets)
        start_time = datetime.now()
        per_endpoint = self.config.num_attempts
        progress = ProgressTracker(len(endpoints) * per_endpoint, self.on_progress)

        if self.verbose:
            print(f"\nRunning latency benchmark on {len(endpoints)} endpoint(s)")
            print(f"  Attempts per endpoint: {self.config.num_attempts}")
            print(f"  Max concurrency: {self.config.max_concurrency}")
            print(f"  Warmup attempts: {self.config.warmup_min_attempts}-{self.config.warmup_max_attempts}")

        collected: list[EndpointResult] = []
        async with self.tracer.async_span("benchmark_run", {"endpoints": len(endpoints)}) as span:
            for i, endpoint in enumerate(endpoints):
                if cancel_event.is_set():
                    logger.info("Cancelled; skipping %d remaining endpoint(s)", len(endpoints) - i)
                    break

                logger.info("Processing '%s' (%d/%d)...", endpoint.uri, i + 1, len(endpoints))
                if self.verbose:
                    print(f"  Processing '{endpoint.uri}' ({i + 1}/{len(endpoints)})...", end="", flush=True)

                result = await self._sample(endpoint, progress, cancel_event)
                collected.append(result)

                if self.verbose:
                    if result.metrics is not None:
                        print(f" mean {result.metrics.mean:.1f}ms ({result.success_count} ok)")
                    else:
                        print(" no successful attempts")

                if not cancel_event.is_set():
                    progress.advance_to((i + 1) * per_endpoint)

            ordered, ranks = rank_results(collected, self.comparator, self.equivalence)
            span.set_attribute("endpoints.sampled", len(collected))
            span.set_attribute("cancelled", cancel_event.is_set())

        end_time = datetime.now()
        project = ProjectResult(
            results=tuple(ordered),
            ranks=tuple(ranks),
            start_time=start_time,
            end_time=end_time,
            output_directory=resolve_output_directory(self.config.output_root, start_time),
            cancelled=cancel_event.is_set(),
            metadata={"config": self.config.to_dict()},
        )

        if self.verbose:
            state = "cancelled" if project.cancelled else "complete"
            print(f"\nBenchmark {state} in {project.duration_seconds:.1f}s")

        return project

    async def _sample(
        self,
        endpoint: Endpoint,
        progress: ProgressTracker,
        cancel_event: asyncio.Event,
    ) -> EndpointResult:
        sampler = self.create_sampler(endpoint, progress)
        try:
            result = await sampler.run(cancel_event)
        except Exception as e:
            logger.error("Sampling '%s' failed", endpoint.uri, exc_info=True)
            self._notify(
                FailureNotice(
                    endpoint_index=endpoint.index,
                    uri=endpoint.uri,
                    kind="endpoint-error",
                    message=str(e) or type(e).__name__,
                )
            )
            return EndpointResult(endpoint=endpoint)

        if result.metrics is None and not cancel_event.is_set():
            logger.warning("No successful attempts for '%s'", endpoint.uri)
            self._notify(
                FailureNotice(
                    endpoint_index=endpoint.index,
                    uri=endpoint.uri,
                    kind="no-successful-attempts",
                    message=f"All {len(result.attempts)} attempts failed",
                )
            )
        return result

    def _endpoints(self, targets: Sequence[Union[str, Endpoint]]) -> list[Endpoint]:
        targets = list(targets or ())
        if all(isinstance(t, Endpoint) for t in targets):
            return targets
        if all(isinstance(t, str) for t in targets):
            return parse_endpoints(targets)
        raise TypeError("targets must be all URL strings or all Endpoint objects")

    def _notify(self, notice: FailureNotice) -> None:
        if self.on_failure:
            self.on_failure(notice)
