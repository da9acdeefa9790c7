"""
Instrumentation for HTTP latency benchmarking.

Provides timing records, the request transport and tracing integration.
"""

from .timing import (
    Failure,
    RequestAttempt,
    Success,
    Timer,
)

from .transport import (
    AiohttpTransport,
    RequestCancelledError,
    Transport,
    TransportResult,
    classify_error,
    run_cancellable,
)

from .traces import (
    Tracer,
    TracingConfig,
    get_tracer,
    init_tracing,
    shutdown_tracing,
)

__all__ = [
    # Timing
    "Failure",
    "RequestAttempt",
    "Success",
    "Timer",
    # Transport
    "AiohttpTransport",
    "RequestCancelledError",
    "Transport",
    "TransportResult",
    "classify_error",
    "run_cancellable",
    # Tracing
    "Tracer",
    "TracingConfig",
    "get_tracer",
    "init_tracing",
    "shutdown_tracing",
]
