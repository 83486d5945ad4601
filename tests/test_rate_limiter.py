"""Tests for request admission, retries and cancellation."""

import asyncio

import pytest

from core.exceptions import (
    ConfigurationError,
    OperationCancelledError,
    ProviderError,
    TransientProviderError,
    ValidationError,
)
from core.models import RateLimitBudget
from mimir.rate_limiter import (
    CancellationToken,
    RequestScheduler,
    RollingWindowLimiter,
    gather_ordered,
    is_retryable,
)


class FlakyCall:
    """Fails with the given errors before returning a value."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def transient():
    return TransientProviderError("fake", "chat", 429, "slow down")


class TestRollingWindowLimiter:
    @pytest.mark.asyncio
    async def test_admits_up_to_capacity_without_waiting(self):
        limiter = RollingWindowLimiter(2, window_seconds=60)

        assert await limiter.acquire() == 0
        assert await limiter.acquire() == 0
        assert limiter.used == 2

    @pytest.mark.asyncio
    async def test_waits_for_window_to_roll(self):
        limiter = RollingWindowLimiter(2, window_seconds=0.05)
        await limiter.acquire()
        await limiter.acquire()

        waited = await limiter.acquire()

        assert waited > 0
        assert limiter.used <= 2

    @pytest.mark.asyncio
    async def test_oversized_weight_clamped_to_capacity(self):
        limiter = RollingWindowLimiter(5, window_seconds=60)

        assert await limiter.acquire(50) == 0
        assert limiter.used == 5

    @pytest.mark.asyncio
    async def test_wait_is_cancellable(self):
        limiter = RollingWindowLimiter(1, window_seconds=60)
        token = CancellationToken()
        await limiter.acquire()

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        with pytest.raises(OperationCancelledError):
            await limiter.acquire(1, token)

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RollingWindowLimiter(0)


class TestIsRetryable:
    @pytest.mark.parametrize("error, expected", [
        (transient(), True),
        (RuntimeError("boom"), True),
        (ProviderError("fake", "chat", 400, "bad request"), False),
        (ConfigurationError("llm.api_key", None, "missing"), False),
        (ValidationError("texts", None, "bad"), False),
        (OperationCancelledError("ingest"), False),
    ])
    def test_classification(self, error, expected):
        assert is_retryable(error) is expected


class TestRequestScheduler:
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        scheduler = RequestScheduler("test", RateLimitBudget(concurrency=2))

        async def slow():
            await asyncio.sleep(0.01)
            return scheduler.in_flight

        results = await asyncio.gather(*(scheduler.run(slow) for _ in range(6)))

        assert max(results) <= 2
        assert scheduler.peak_in_flight == 2
        assert scheduler.in_flight == 0

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self):
        scheduler = RequestScheduler("test", RateLimitBudget(retries=3), backoff_base=0)
        call = FlakyCall([transient(), transient()])

        assert await scheduler.run(call) == "ok"
        assert call.attempts == 3
        assert scheduler.failed_attempts == 2

    @pytest.mark.asyncio
    async def test_last_error_raised_when_retries_exhausted(self):
        scheduler = RequestScheduler("test", RateLimitBudget(retries=2), backoff_base=0)
        call = FlakyCall([transient() for _ in range(5)])

        with pytest.raises(TransientProviderError):
            await scheduler.run(call)
        assert call.attempts == 3

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self):
        scheduler = RequestScheduler("test", RateLimitBudget(retries=5), backoff_base=0)
        call = FlakyCall([ProviderError("fake", "chat", 400, "bad request")])

        with pytest.raises(ProviderError):
            await scheduler.run(call)
        assert call.attempts == 1

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_call(self):
        scheduler = RequestScheduler("test", RateLimitBudget())
        token = CancellationToken()
        token.cancel()
        call = FlakyCall([])

        with pytest.raises(OperationCancelledError):
            await scheduler.run(call, cancellation=token)
        assert call.attempts == 0

    @pytest.mark.asyncio
    async def test_cancellation_aborts_in_flight_call(self):
        scheduler = RequestScheduler("test", RateLimitBudget())
        token = CancellationToken()

        async def hang():
            await asyncio.sleep(30)

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(scheduler.run(hang, cancellation=token), timeout=5)
        assert scheduler.in_flight == 0

    @pytest.mark.asyncio
    async def test_cancellation_interrupts_backoff(self):
        scheduler = RequestScheduler("test", RateLimitBudget(retries=3), backoff_base=30, backoff_max=30)
        token = CancellationToken()
        call = FlakyCall([transient() for _ in range(5)])

        asyncio.get_running_loop().call_later(0.02, token.cancel)
        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(scheduler.run(call, cancellation=token), timeout=5)
        assert call.attempts == 1

    @pytest.mark.asyncio
    async def test_token_budget_delays_admission(self):
        budget = RateLimitBudget(tokens_per_window=100, window_seconds=0.05)
        scheduler = RequestScheduler("test", budget)
        loop = asyncio.get_running_loop()

        async def now():
            return loop.time()

        first = await scheduler.run(now, token_cost=60)
        second = await scheduler.run(now, token_cost=60)

        assert second - first >= 0.03


class TestGatherOrdered:
    @pytest.mark.asyncio
    async def test_results_follow_submission_order(self):
        async def value(result, delay):
            await asyncio.sleep(delay)
            return result

        results = await gather_ordered([value("a", 0.03), value("b", 0.0), value("c", 0.01)])

        assert results == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await gather_ordered([]) == []

    @pytest.mark.asyncio
    async def test_first_failure_cancels_siblings(self):
        cancelled = asyncio.Event()

        async def fail():
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        async def slow():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(RuntimeError):
            await gather_ordered([slow(), fail()])
        assert cancelled.is_set()
