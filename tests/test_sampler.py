"""Tests for per-endpoint request sampling."""

import asyncio

import aiohttp
import pytest

from fakes import FakeTransport, InstrumentedTransport, SequenceTransport
from harness.results import Endpoint
from harness.sampler import RequestSampler, SamplerState
from instrumentation.transport import TransportResult

URI = "http://service.test/health"
ENDPOINT = Endpoint(index=3, uri=URI)


def run(coro):
    return asyncio.run(coro)


class FlakyTransport:
    """Fails every other request with alternating error kinds."""

    def __init__(self):
        self.issued = 0

    async def issue(self, uri, cancel_event):
        self.issued += 1
        n = self.issued
        await asyncio.sleep(0)
        if n % 2 == 0:
            return TransportResult(duration_ms=5.0, status=200)
        if n % 4 == 1:
            return TransportResult(duration_ms=1.0, error=asyncio.TimeoutError())
        return TransportResult(duration_ms=1.0, error=aiohttp.ClientConnectionError(f"refused #{n}"))


class TestMeasuring:
    def test_records_every_attempt(self):
        transport = FakeTransport(latencies={URI: 50.0})
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=25, max_concurrency=4,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        result = run(sampler.run())

        assert len(result.attempts) == 25
        assert result.sample == (50.0,) * 25
        assert result.metrics.mean == 50.0
        assert sampler.state is SamplerState.DONE
        assert sorted(a.attempt_index for a in result.attempts) == list(range(25))
        assert all(a.endpoint_index == 3 for a in result.attempts)
        assert all(a.end_timestamp >= a.start_timestamp for a in result.attempts)

    def test_concurrency_never_exceeds_bound(self):
        transport = InstrumentedTransport(delay_seconds=0.002)
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=60, max_concurrency=5,
                                 warmup_max_attempts=10, warmup_min_attempts=5)
        result = run(sampler.run())

        assert len(result.attempts) == 60
        assert 1 <= transport.max_in_flight <= 5
        assert transport.in_flight == 0

    def test_concurrency_bound_is_used(self):
        transport = InstrumentedTransport(delay_seconds=0.01)
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=20, max_concurrency=4,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        run(sampler.run())
        assert transport.max_in_flight == 4

    def test_failures_are_data(self):
        transport = FakeTransport(failures={URI: aiohttp.ClientConnectionError("refused")})
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=10,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        result = run(sampler.run())

        assert len(result.attempts) == 10
        assert result.sample == ()
        assert result.metrics is None
        assert result.failure_count == 10
        assert all(a.outcome.kind == "connection" for a in result.attempts)

    def test_exceptions_from_transport_are_captured(self):
        transport = FakeTransport(raises={URI: RuntimeError("boom")})
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=5,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        result = run(sampler.run())

        assert len(result.attempts) == 5
        assert all(not a.succeeded for a in result.attempts)
        assert result.attempts[0].outcome.kind == "builtins.RuntimeError"

    def test_sample_keeps_only_successes_in_attempt_order(self):
        transport = FlakyTransport()
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=12, max_concurrency=1,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        result = run(sampler.run())

        assert len(result.attempts) == 12
        assert result.success_count == 6
        assert result.sample == (5.0,) * 6

    def test_runs_only_once(self):
        sampler = RequestSampler(ENDPOINT, FakeTransport(), num_attempts=1,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        run(sampler.run())
        with pytest.raises(RuntimeError):
            run(sampler.run())

    @pytest.mark.parametrize("kwargs", [{"num_attempts": -1}, {"max_concurrency": 0}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            RequestSampler(ENDPOINT, FakeTransport(), **kwargs)


class TestProgressAndFailures:
    def test_one_tick_per_attempt(self):
        ticks = []
        sampler = RequestSampler(ENDPOINT, FlakyTransport(), num_attempts=15, max_concurrency=3,
                                 warmup_max_attempts=0, warmup_min_attempts=0,
                                 on_tick=lambda: ticks.append(1))
        run(sampler.run())
        assert len(ticks) == 15

    def test_failures_reported_once_per_kind(self):
        notices = []
        sampler = RequestSampler(ENDPOINT, FlakyTransport(), num_attempts=40, max_concurrency=4,
                                 warmup_max_attempts=0, warmup_min_attempts=0,
                                 on_failure=notices.append)
        run(sampler.run())

        assert sorted(n.kind for n in notices) == ["connection", "timeout"]
        assert sampler.reported_kinds == {"connection", "timeout"}
        assert all(n.endpoint_index == 3 and n.uri == URI for n in notices)

    def test_raising_tick_callback_aborts_measuring(self):
        def on_tick():
            raise RuntimeError("progress display broke")

        transport = InstrumentedTransport(delay_seconds=0.001)
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=100, max_concurrency=20,
                                 warmup_max_attempts=0, warmup_min_attempts=0, on_tick=on_tick)

        with pytest.raises(RuntimeError, match="progress display broke"):
            run(asyncio.wait_for(sampler.run(), timeout=5))
        assert transport.in_flight == 0

    def test_failure_logged_as_warning(self, caplog):
        transport = FakeTransport(failures={URI: aiohttp.ClientConnectionError("refused")})
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=5,
                                 warmup_max_attempts=0, warmup_min_attempts=0)
        with caplog.at_level("WARNING", logger="harness.sampler"):
            run(sampler.run())
        warnings = [r for r in caplog.records if r.levelname == "WARNING"]
        assert len(warnings) == 1
        assert "connection" in warnings[0].getMessage()


class TestCancellation:
    def test_cancel_before_start_issues_nothing(self):
        transport = InstrumentedTransport()

        async def scenario():
            cancel_event = asyncio.Event()
            cancel_event.set()
            sampler = RequestSampler(ENDPOINT, transport, num_attempts=10)
            return await sampler.run(cancel_event)

        result = run(scenario())
        assert result.attempts == ()
        assert result.metrics is None
        assert transport.issued == 0

    @pytest.mark.parametrize("cancel_after", [1, 3, 7, 12])
    def test_cancel_mid_run_keeps_at_most_dispatched(self, cancel_after):
        async def scenario():
            cancel_event = asyncio.Event()
            transport = InstrumentedTransport(delay_seconds=0.02, cancel_after=cancel_after)
            sampler = RequestSampler(ENDPOINT, transport, num_attempts=50, max_concurrency=4,
                                     warmup_max_attempts=0, warmup_min_attempts=0)
            result = await sampler.run(cancel_event)
            return transport, result

        transport, result = run(scenario())

        assert transport.issued == cancel_after
        assert len(result.attempts) <= cancel_after
        assert transport.in_flight == 0

    def test_cancelled_requests_stay_out_of_the_sample_and_silent(self):
        notices = []

        async def scenario():
            cancel_event = asyncio.Event()
            transport = InstrumentedTransport(delay_seconds=0.05, cancel_after=4)
            sampler = RequestSampler(ENDPOINT, transport, num_attempts=50, max_concurrency=4,
                                     warmup_max_attempts=0, warmup_min_attempts=0,
                                     on_failure=notices.append)
            return await sampler.run(cancel_event)

        result = run(scenario())

        assert len(result.attempts) == 4
        assert result.sample == ()
        assert all(a.outcome.kind == "cancelled" for a in result.attempts)
        assert notices == []

    def test_completed_attempts_survive_cancellation(self):
        async def scenario():
            cancel_event = asyncio.Event()
            transport = InstrumentedTransport(delay_seconds=0.01)
            sampler = RequestSampler(ENDPOINT, transport, num_attempts=1000, max_concurrency=2,
                                     warmup_max_attempts=0, warmup_min_attempts=0)
            task = asyncio.ensure_future(sampler.run(cancel_event))
            await asyncio.sleep(0.1)
            cancel_event.set()
            return await task

        result = run(scenario())

        assert 0 < len(result.attempts) < 1000
        assert result.success_count > 0
        assert result.metrics is not None
        assert result.metrics.count == result.success_count


class TestWarmup:
    def test_warmup_is_not_measured(self):
        transport = FakeTransport(latencies={URI: 20.0})
        ticks = []
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=10, max_concurrency=1,
                                 warmup_min_attempts=5, warmup_max_attempts=8,
                                 on_tick=lambda: ticks.append(1))
        result = run(sampler.run())

        assert len(result.attempts) == 10
        assert len(ticks) == 10
        assert sampler.warmup_attempts_issued == 8
        assert transport.calls[URI] == 18

    def test_warmup_stops_when_latency_rises(self):
        # Improving for the first six requests, then slower
        warmup = [100.0, 90.0, 80.0, 70.0, 60.0, 50.0, 55.0]
        transport = SequenceTransport(warmup + [40.0] * 100)
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=5, max_concurrency=1,
                                 warmup_min_attempts=5, warmup_max_attempts=20)
        result = run(sampler.run())

        assert sampler.warmup_attempts_issued == 7
        assert result.sample == (40.0,) * 5

    def test_rise_before_minimum_does_not_stop(self):
        warmup = [10.0, 20.0, 30.0, 40.0]
        transport = SequenceTransport(warmup + [40.0] * 100)
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=1, max_concurrency=1,
                                 warmup_min_attempts=10, warmup_max_attempts=12)
        run(sampler.run())
        # Latency only rises before the minimum is reached, then stays flat
        assert transport.issued == 13
        assert sampler.warmup_attempts_issued == 12

    def test_no_warmup_when_disabled(self):
        transport = FakeTransport()
        sampler = RequestSampler(ENDPOINT, transport, num_attempts=3,
                                 warmup_min_attempts=0, warmup_max_attempts=0)
        run(sampler.run())
        assert sampler.warmup_attempts_issued == 0
        assert transport.calls[URI] == 3
