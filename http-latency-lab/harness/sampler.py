"""
Per-endpoint request sampling.

A sampler warms the endpoint up, then issues a fixed number of measured
requests with at most ``max_concurrency`` in flight. Finished attempts flow
through a bounded queue to a single collector task that owns the attempt log.
Request failures are recorded as data and never raised.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

from instrumentation.timing import Failure, RequestAttempt, Success
from instrumentation.traces import Tracer, get_tracer
from instrumentation.transport import Transport, classify_error

from .progress import FailureCallback, FailureNotice
from .results import Endpoint, EndpointResult

logger = logging.getLogger(__name__)


DEFAULT_ATTEMPT_COUNT = 100
DEFAULT_MAX_CONCURRENCY = 20
DEFAULT_WARMUP_MIN_ATTEMPTS = 10
DEFAULT_WARMUP_MAX_ATTEMPTS = 20
QUEUE_CAPACITY = 32


class SamplerState(Enum):
    IDLE = "idle"
    WARMUP = "warmup"
    MEASURING = "measuring"
    DONE = "done"


class RequestSampler:
    """Samples the latency of a single endpoint. Each instance runs once."""

    def __init__(
        self,
        endpoint: Endpoint,
        transport: Transport,
        num_attempts: int = DEFAULT_ATTEMPT_COUNT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        warmup_min_attempts: int = DEFAULT_WARMUP_MIN_ATTEMPTS,
        warmup_max_attempts: int = DEFAULT_WARMUP_MAX_ATTEMPTS,
        on_tick: Optional[Callable[[], None]] = None,
        on_failure: Optional[FailureCallback] = None,
        tracer: Optional[Tracer] = None,
        queue_capacity: int = QUEUE_CAPACITY,
    ):
        if num_attempts < 0:
            raise ValueError(f"num_attempts must be >= 0, got {num_attempts}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        self.endpoint = endpoint
        self.transport = transport
        self.num_attempts = num_attempts
        self.max_concurrency = max_concurrency
        self.warmup_min_attempts = warmup_min_attempts
        self.warmup_max_attempts = warmup_max_attempts
        self.on_tick = on_tick
        self.on_failure = on_failure
        self.tracer = tracer or get_tracer()
        self.queue_capacity = queue_capacity

        self.state = SamplerState.IDLE
        self.warmup_attempts_issued = 0
        # Only touched from the event loop thread.
        self._reported_kinds: set[str] = set()

    @property
    def reported_kinds(self) -> frozenset[str]:
        return frozenset(self._reported_kinds)

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> EndpointResult:
        """Warm up, measure, and build the endpoint result.

        Setting ``cancel_event`` stops issuing new requests and aborts the ones
        in flight; attempts finished so far are kept.
        """
        if self.state is not SamplerState.IDLE:
            raise RuntimeError(f"Sampler for {self.endpoint.uri} has already run")
        cancel_event = cancel_event or asyncio.Event()

        attributes = {
            "endpoint.index": self.endpoint.index,
            "endpoint.uri": self.endpoint.uri,
            "sampler.attempts": self.num_attempts,
            "sampler.concurrency": self.max_concurrency,
        }
        async with self.tracer.async_span("sample_endpoint", attributes) as span:
            self.state = SamplerState.WARMUP
            self.warmup_attempts_issued = await self._warmup(cancel_event)

            self.state = SamplerState.MEASURING
            attempts = await self._measure(cancel_event)

            self.state = SamplerState.DONE
            result = EndpointResult.from_attempts(self.endpoint, attempts)
            span.set_attribute("sampler.warmup_attempts", self.warmup_attempts_issued)
            span.set_attribute("sampler.recorded_attempts", len(result.attempts))
            span.set_attribute("sampler.successes", result.success_count)

        return result

    async def _warmup(self, cancel_event: asyncio.Event) -> int:
        """Issue unmeasured requests until latency stops improving.

        Once ``warmup_min_attempts`` have reported, the first duration that is
        worse than the previous successful one ends the warmup and aborts the
        remaining warmup requests. Returns the number of requests issued.
        """
        if self.warmup_max_attempts <= 0 or cancel_event.is_set():
            return 0

        stop_event = asyncio.Event()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        reported = 0
        issued = 0
        previous: Optional[float] = None

        async def relay_cancel() -> None:
            await cancel_event.wait()
            stop_event.set()

        async def warm(attempt_index: int) -> None:
            nonlocal reported, issued, previous
            async with semaphore:
                if stop_event.is_set():
                    return
                issued += 1
                attempt = await self._attempt(attempt_index, stop_event)

            reported += 1
            if not attempt.succeeded:
                return
            duration = attempt.duration_ms
            if reported >= self.warmup_min_attempts and previous is not None and duration > previous:
                stop_event.set()
            previous = duration

        relay = asyncio.ensure_future(relay_cancel())
        try:
            await asyncio.gather(*(warm(i) for i in range(self.warmup_max_attempts)))
        finally:
            relay.cancel()

        logger.debug("Warmup of '%s' issued %d requests", self.endpoint.uri, issued)
        return issued

    async def _measure(self, cancel_event: asyncio.Event) -> list[RequestAttempt]:
        attempts: list[RequestAttempt] = []
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_capacity)
        collector = asyncio.ensure_future(self._collect(queue, attempts))
        semaphore = asyncio.Semaphore(self.max_concurrency)
        workers: list[asyncio.Task] = []

        try:
            for attempt_index in range(self.num_attempts):
                if cancel_event.is_set() or collector.done():
                    break
                await semaphore.acquire()
                if cancel_event.is_set():
                    semaphore.release()
                    break
                workers.append(
                    asyncio.ensure_future(
                        self._measure_one(attempt_index, semaphore, queue, cancel_event)
                    )
                )
            if workers:
                gathered = asyncio.gather(*workers)
                await asyncio.wait({gathered, collector}, return_when=asyncio.FIRST_COMPLETED)
                if gathered.done():
                    gathered.result()
            # The collector only stops before the end marker when it failed.
            if collector.done():
                collector.result()
        except BaseException:
            for worker in workers:
                worker.cancel()
            collector.cancel()
            raise

        await queue.put(None)
        await collector
        return attempts

    async def _measure_one(
        self,
        attempt_index: int,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue,
        cancel_event: asyncio.Event,
    ) -> None:
        try:
            if cancel_event.is_set():
                return
            attempt = await self._attempt(attempt_index, cancel_event)
        finally:
            semaphore.release()
        await queue.put(attempt)

    async def _collect(self, queue: asyncio.Queue, attempts: list[RequestAttempt]) -> None:
        while True:
            attempt = await queue.get()
            if attempt is None:
                return
            attempts.append(attempt)
            if self.on_tick:
                self.on_tick()

    async def _attempt(self, attempt_index: int, cancel_event: asyncio.Event) -> RequestAttempt:
        reported_duration: Optional[float] = None
        start = time.perf_counter()
        try:
            result = await self.transport.issue(self.endpoint.uri, cancel_event)
        except Exception as e:
            end = time.perf_counter()
            outcome = Failure(error=e, kind=classify_error(e))
        else:
            end = time.perf_counter()
            reported_duration = result.duration_ms
            if result.success:
                outcome = Success(status=result.status)
            else:
                outcome = Failure(error=result.error, kind=classify_error(result.error))

        if isinstance(outcome, Failure):
            self._report_failure(outcome)

        return RequestAttempt(
            endpoint_index=self.endpoint.index,
            attempt_index=attempt_index,
            start_timestamp=start,
            end_timestamp=end,
            outcome=outcome,
            reported_duration_ms=reported_duration,
        )

    def _report_failure(self, failure: Failure) -> None:
        """Surface the first failure of each kind; cancellations stay silent."""
        if failure.kind == "cancelled" or failure.kind in self._reported_kinds:
            return
        self._reported_kinds.add(failure.kind)

        logger.warning(
            "Request to '%s' failed (%s): %s",
            self.endpoint.uri,
            failure.kind,
            failure.error,
        )
        if self.on_failure:
            self.on_failure(
                FailureNotice(
                    endpoint_index=self.endpoint.index,
                    uri=self.endpoint.uri,
                    kind=failure.kind,
                    message=str(failure.error) or type(failure.error).__name__,
                )
            )
