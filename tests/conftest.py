"""Shared fixtures for the latency lab tests.

Fake transports live in fakes.py; import them directly with
``from fakes import FakeTransport, InstrumentedTransport``.
"""

import pytest

from instrumentation.traces import shutdown_tracing


@pytest.fixture(autouse=True)
def reset_tracing():
    """Each test starts with the no-op global tracer."""
    shutdown_tracing()
    yield
    shutdown_tracing()
