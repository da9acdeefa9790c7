"""
Timing utilities and per-request records for latency benchmarking.

Timestamps come from ``time.perf_counter`` and are only meaningful relative
to each other; durations are reported in milliseconds.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class Success:
    """A request that produced a response."""

    status: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A request that did not produce a response."""

    error: BaseException
    kind: str

    @property
    def succeeded(self) -> bool:
        return False


Outcome = Union[Success, Failure]


@dataclass(frozen=True)
class RequestAttempt:
    """One measured request against one endpoint."""

    endpoint_index: int
    attempt_index: int
    start_timestamp: float
    end_timestamp: float
    outcome: Outcome
    reported_duration_ms: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome.succeeded

    @property
    def duration_ms(self) -> float:
        """Duration reported by the transport, else wall clock between timestamps."""
        if self.reported_duration_ms is not None:
            return self.reported_duration_ms
        return (self.end_timestamp - self.start_timestamp) * 1000

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            "endpoint_index": self.endpoint_index,
            "attempt_index": self.attempt_index,
            "duration_ms": self.duration_ms,
            "succeeded": self.succeeded,
        }
        if isinstance(self.outcome, Success):
            data["status"] = self.outcome.status
        else:
            data["error_kind"] = self.outcome.kind
            data["error"] = str(self.outcome.error)
        return data


@dataclass
class Timer:
    """Simple timer for manual timing control."""

    name: str = "timer"
    start_time: float = 0.0
    end_time: float = 0.0
    _running: bool = field(default=False, repr=False)

    def start(self) -> "Timer":
        """Start the timer."""
        self.start_time = time.perf_counter()
        self._running = True
        return self

    def stop(self) -> "Timer":
        """Stop the timer."""
        self.end_time = time.perf_counter()
        self._running = False
        return self

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_time if not self._running else time.perf_counter()
        return (end - self.start_time) * 1000
