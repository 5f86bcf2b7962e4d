"""
Tests for timeouts, retries, cancellation and cooperative chunking.
"""
import asyncio

import pytest

from meridian.errors import InputValidationError, OperationCancelled, OracleCallFailure, OracleTimeout
from meridian.resilience import RateLimit, ResiliencePolicy, with_resilience
from meridian.scheduling import CancellationToken, get_optimal_chunk_size, process_in_chunks


class Flaky:
    """Fails a set number of times, then returns 'ok'."""

    def __init__(self, failures, error=RuntimeError("boom")):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestWithResilience:
    """Bounded retries around external calls."""

    def test_success_after_retry(self, fast_policy):
        call = Flaky(failures=1)
        assert asyncio.run(with_resilience(call, fast_policy)) == "ok"
        assert call.calls == 2

    def test_budget_exhausted(self, fast_policy):
        call = Flaky(failures=5)
        with pytest.raises(OracleCallFailure, match="boom") as exc_info:
            asyncio.run(with_resilience(call, fast_policy))
        assert call.calls == 2
        assert exc_info.value.details["error_type"] == "RuntimeError"

    def test_timeout(self):
        async def slow():
            await asyncio.sleep(1)

        policy = ResiliencePolicy(name="slow", timeout_seconds=0.01, max_retries=0)
        with pytest.raises(OracleTimeout):
            asyncio.run(with_resilience(slow, policy))

    def test_call_failure_keeps_its_type(self, fast_policy):
        call = Flaky(failures=5, error=OracleCallFailure("job failed", details={"job_id": "j1"}))
        with pytest.raises(OracleCallFailure) as exc_info:
            asyncio.run(with_resilience(call, fast_policy))
        assert call.calls == 2
        assert exc_info.value.message == "job failed"
        assert exc_info.value.details == {"job_id": "j1"}

    def test_timeout_raised_by_call_is_final(self, fast_policy):
        """A call that already waited out its own deadline is not retried."""
        call = Flaky(failures=5, error=OracleTimeout("job expired"))
        with pytest.raises(OracleTimeout, match="job expired"):
            asyncio.run(with_resilience(call, fast_policy))
        assert call.calls == 1

    def test_timeouts_not_retried_when_disabled(self):
        calls = []

        async def slow():
            calls.append(1)
            await asyncio.sleep(1)

        policy = ResiliencePolicy(
            name="slow", timeout_seconds=0.01, max_retries=2, backoff_seconds=0.0, retry_timeouts=False,
        )
        with pytest.raises(OracleTimeout):
            asyncio.run(with_resilience(slow, policy))
        assert len(calls) == 1

    def test_validation_errors_not_retried(self, fast_policy):
        call = Flaky(failures=5, error=InputValidationError("bad"))
        with pytest.raises(InputValidationError):
            asyncio.run(with_resilience(call, fast_policy))
        assert call.calls == 1

    def test_cancelled_before_first_attempt(self, fast_policy):
        async def go():
            token = CancellationToken()
            token.cancel("stop")
            return await with_resilience(Flaky(0), fast_policy, cancel_token=token)

        with pytest.raises(OperationCancelled, match="stop"):
            asyncio.run(go())

    def test_cancel_interrupts_in_flight_call(self):
        """Firing the token aborts a call that is still waiting."""
        async def go():
            token = CancellationToken()

            async def hang():
                await asyncio.sleep(10)

            asyncio.get_running_loop().call_later(0.01, token.cancel, "user")
            policy = ResiliencePolicy(name="hang", timeout_seconds=5, max_retries=0)
            return await with_resilience(hang, policy, cancel_token=token)

        with pytest.raises(OperationCancelled):
            asyncio.run(go())

    def test_rate_limited_call(self, fast_policy):
        async def go():
            limiter = RateLimit(max_calls=10, per_seconds=1.0).build()
            return [await with_resilience(Flaky(0), fast_policy, limiter=limiter) for _ in range(3)]

        assert asyncio.run(go()) == ["ok", "ok", "ok"]

    def test_backoff_is_capped(self):
        policy = ResiliencePolicy(backoff_seconds=1, backoff_factor=2, max_backoff_seconds=5)
        assert [policy.backoff_for(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]


class TestProcessInChunks:
    """Cooperative chunked iteration."""

    def test_results_in_order(self):
        results = asyncio.run(process_in_chunks(list(range(10)), lambda item, i: item * 2, chunk_size=3))
        assert results == [i * 2 for i in range(10)]

    def test_chunk_callbacks(self):
        chunks = []
        asyncio.run(process_in_chunks(
            list(range(5)), lambda item, i: i, chunk_size=2,
            on_chunk_complete=lambda results, index: chunks.append((index, results)),
        ))
        assert chunks == [(0, [0, 1]), (1, [2, 3]), (2, [4])]

    def test_empty(self):
        assert asyncio.run(process_in_chunks([], lambda item, i: item)) == []

    @pytest.mark.parametrize("total, size", [(50, 50), (500, 50), (5_000, 100), (50_000, 250)])
    def test_adaptive_chunk_size(self, total, size):
        assert get_optimal_chunk_size(total) == size
