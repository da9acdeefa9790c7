"""
Tracing utilities for latency benchmarking.

Wraps OpenTelemetry. Until ``init_tracing`` installs an SDK provider the API
hands out no-op tracers, so spans cost next to nothing by default.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Status, StatusCode


class TracingConfig:
    """Configuration for tracing setup."""

    def __init__(
        self,
        service_name: str = "http-latency-lab",
        enable_console_export: bool = True,
    ):
        self.service_name = service_name
        self.enable_console_export = enable_console_export


class Tracer:
    """Thin span helper over an OpenTelemetry tracer."""

    def __init__(self, config: Optional[TracingConfig] = None):
        self.config = config or TracingConfig()
        self._provider: Optional[TracerProvider] = None
        self._otel_tracer = trace.get_tracer(self.config.service_name)

    def initialize(self) -> "Tracer":
        """Install an SDK tracer provider."""
        if self._provider is not None:
            return self

        resource = Resource.create({"service.name": self.config.service_name})
        provider = TracerProvider(resource=resource)
        if self.config.enable_console_export:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        self._provider = provider
        self._otel_tracer = provider.get_tracer(self.config.service_name)
        return self

    def shutdown(self) -> None:
        """Flush and shut down the provider, if one was installed."""
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
            self._otel_tracer = trace.get_tracer(self.config.service_name)

    @asynccontextmanager
    async def async_span(
        self,
        name: str,
        attributes: Optional[dict] = None,
    ) -> AsyncIterator[Any]:
        """Create a traced span for async operations.

        Usage:
            async with tracer.async_span("sample_endpoint", {"uri": uri}) as span:
                # do async work
                span.set_attribute("attempts", 100)
        """
        with self._otel_tracer.start_as_current_span(
            name,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise


# Global tracer instance
_global_tracer: Optional[Tracer] = None


def get_tracer(config: Optional[TracingConfig] = None) -> Tracer:
    """Get or create the global tracer instance."""
    global _global_tracer
    if _global_tracer is None:
        _global_tracer = Tracer(config)
    return _global_tracer


def init_tracing(config: Optional[TracingConfig] = None) -> Tracer:
    """Initialize global tracing."""
    tracer = get_tracer(config)
    return tracer.initialize()


def shutdown_tracing() -> None:
    """Shutdown global tracing."""
    global _global_tracer
    if _global_tracer:
        _global_tracer.shutdown()
        _global_tracer = None
