"""
Benchmark harness for HTTP latency experiments.

Provides per-endpoint sampling, orchestration and reporting capabilities.
"""

from .progress import (
    FailureNotice,
    ProgressTracker,
)

from .results import (
    Endpoint,
    EndpointResult,
    ProjectResult,
)

from .sampler import (
    RequestSampler,
    SamplerState,
)

from .runner import (
    BenchmarkConfig,
    BenchmarkRunner,
    parse_endpoints,
    resolve_output_directory,
)

from .reporter import (
    ConsoleReporter,
)

__all__ = [
    # Progress
    "FailureNotice",
    "ProgressTracker",
    # Results
    "Endpoint",
    "EndpointResult",
    "ProjectResult",
    # Sampler
    "RequestSampler",
    "SamplerState",
    # Runner
    "BenchmarkConfig",
    "BenchmarkRunner",
    "parse_endpoints",
    "resolve_output_directory",
    # Reporter
    "ConsoleReporter",
]
