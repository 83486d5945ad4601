"""Rate-limited request scheduling for Mimir - admission, retries and cancellation for LLM calls.

Every outbound embedding or chat call goes through a `RequestScheduler` bound
to one provider and call kind. A call first reserves its estimated tokens,
then takes a concurrency slot and a request slot, and is retried with
exponential backoff on failure.
"""

import asyncio
import math
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Iterable, List, Optional, Tuple, TypeVar

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.exceptions import (
    ConfigurationError,
    DataIntegrityError,
    OperationCancelledError,
    ProviderError,
    TransientProviderError,
    ValidationError,
)
from core.models import RateLimitBudget

T = TypeVar('T')


class CancellationToken:
    """Cooperative cancellation signal shared by every suspension point of a run."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token; pending waits and calls fail with OperationCancelledError."""
        self._event.set()

    def raise_if_cancelled(self, operation: Optional[str] = None) -> None:
        if self._event.is_set():
            raise OperationCancelledError(operation)

    async def sleep(self, delay: float, operation: Optional[str] = None) -> None:
        """Sleep for `delay` seconds unless the token fires first."""
        self.raise_if_cancelled(operation)
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError(operation)

    async def run(self, awaitable: Awaitable[T], operation: Optional[str] = None) -> T:
        """Await `awaitable`, cancelling it if the token fires first."""
        self.raise_if_cancelled(operation)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Cancelled call raised while shutting down: {e}")
        raise OperationCancelledError(operation)


async def _sleep(delay: float, cancellation: Optional[CancellationToken], operation: str) -> None:
    if cancellation is not None:
        await cancellation.sleep(delay, operation)
    else:
        await asyncio.sleep(delay)


class RollingWindowLimiter:
    """Weighted admission limiter over a rolling time window.

    At most `capacity` units of weight are admitted within any window of
    `window_seconds`. A weight larger than the capacity is clamped to the
    capacity so it is admitted once the window is empty.
    """

    def __init__(
        self,
        capacity: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "limiter"
    ):
        """Initialize rolling window limiter.

        Args:
            capacity: Maximum weight admitted per window
            window_seconds: Length of the rolling window
            clock: Monotonic clock returning seconds
            name: Label used in log messages
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._window = window_seconds
        self._clock = clock
        self._name = name
        self._entries: Deque[Tuple[float, int]] = deque()
        self._used = 0
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def used(self) -> int:
        """Weight admitted within the current window."""
        self._prune(self._clock())
        return self._used

    def _prune(self, now: float) -> None:
        while self._entries and self._entries[0][0] + self._window <= now:
            _, weight = self._entries.popleft()
            self._used -= weight

    def _delay_until_fits(self, weight: int, now: float) -> float:
        needed = self._used + weight - self._capacity
        freed = 0
        for admitted_at, entry_weight in self._entries:
            freed += entry_weight
            if freed >= needed:
                return max(admitted_at + self._window - now, 0.001)
        return self._window

    async def acquire(self, weight: int = 1, cancellation: Optional[CancellationToken] = None) -> float:
        """Wait until `weight` fits in the window and record it.

        Args:
            weight: Units to admit
            cancellation: Optional token aborting the wait

        Returns:
            Seconds spent waiting
        """
        weight = min(max(1, int(weight)), self._capacity)
        waited = 0.0

        while True:
            async with self._lock:
                now = self._clock()
                self._prune(now)
                if self._used + weight <= self._capacity:
                    self._entries.append((now, weight))
                    self._used += weight
                    return waited
                delay = self._delay_until_fits(weight, now)

            logger.debug(f"{self._name}: window full ({self._used}/{self._capacity}), waiting {delay:.2f}s")
            await _sleep(delay, cancellation, self._name)
            waited += delay


_NON_RETRYABLE = (
    OperationCancelledError,
    ConfigurationError,
    DataIntegrityError,
    ValidationError,
)


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failed call should be attempted again."""
    if not isinstance(error, Exception):
        return False
    if isinstance(error, _NON_RETRYABLE):
        return False
    if isinstance(error, ProviderError) and not isinstance(error, TransientProviderError):
        return False
    return True


class RequestScheduler:
    """Admits and retries outbound calls under one provider's rate budget."""

    def __init__(
        self,
        name: str,
        budget: RateLimitBudget,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize request scheduler.

        Args:
            name: Label such as "openai:embedding" used in logs
            budget: Concurrency, request, token and retry limits
            backoff_base: Multiplier of the exponential backoff in seconds
            backoff_max: Upper bound of a single backoff sleep
            clock: Monotonic clock shared by the window limiters
        """
        self._name = name
        self._budget = budget
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._semaphore = asyncio.Semaphore(budget.concurrency)
        self._request_limiter: Optional[RollingWindowLimiter] = None
        self._token_limiter: Optional[RollingWindowLimiter] = None

        if budget.requests_per_window:
            self._request_limiter = RollingWindowLimiter(
                budget.requests_per_window, budget.window_seconds, clock, f"{name}:requests"
            )
        if budget.tokens_per_window:
            self._token_limiter = RollingWindowLimiter(
                budget.tokens_per_window, budget.window_seconds, clock, f"{name}:tokens"
            )

        self._in_flight = 0
        self._peak_in_flight = 0
        self._failed_attempts = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def budget(self) -> RateLimitBudget:
        return self._budget

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneously running calls observed."""
        return self._peak_in_flight

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        token_cost: float = 0,
        description: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> T:
        """Run `call` once admitted, retrying failures within the budget.

        Args:
            call: Zero-argument coroutine factory performing one provider request
            token_cost: Estimated tokens consumed by the request
            description: Label for log messages (defaults to the scheduler name)
            cancellation: Optional token aborting admission, backoff and the call

        Returns:
            Result of the first successful attempt

        Raises:
            OperationCancelledError: If the token fires before completion
            Exception: The last failure once retries are exhausted
        """
        label = description or self._name
        if cancellation is not None:
            cancellation.raise_if_cancelled(label)

        await self._reserve_tokens(token_cost, cancellation)

        if cancellation is not None:
            await cancellation.run(self._semaphore.acquire(), label)
        else:
            await self._semaphore.acquire()

        try:
            if self._request_limiter is not None:
                await self._request_limiter.acquire(1, cancellation)

            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                return await self._call_with_retries(call, label, cancellation)
            finally:
                self._in_flight -= 1
        finally:
            self._semaphore.release()

    async def _reserve_tokens(self, token_cost: float, cancellation: Optional[CancellationToken]) -> None:
        if self._token_limiter is None or token_cost <= 0:
            return
        weight = max(1, math.ceil(token_cost))
        waited = await self._token_limiter.acquire(weight, cancellation)
        if waited:
            logger.debug(f"{self._name}: reserved {weight} tokens after waiting {waited:.2f}s")

    async def _call_with_retries(
        self,
        call: Callable[[], Awaitable[T]],
        label: str,
        cancellation: Optional[CancellationToken]
    ) -> T:
        max_attempts = self._budget.retries + 1

        def log_failed_attempt(retry_state) -> None:
            self._failed_attempts += 1
            error = retry_state.outcome.exception()
            remaining = max_attempts - retry_state.attempt_number
            logger.warning(
                f"{label} failed attempt {retry_state.attempt_number} "
                f"({remaining} retries left): {error}"
            )

        async def backoff_sleep(seconds: float) -> None:
            await _sleep(seconds, cancellation, label)

        async def attempt() -> T:
            if cancellation is not None:
                return await cancellation.run(call(), label)
            return await call()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=self._backoff_base, min=0, max=self._backoff_max),
            retry=retry_if_exception(is_retryable),
            after=log_failed_attempt,
            sleep=backoff_sleep,
            reraise=True,
        )
        return await retrying(attempt)


async def gather_ordered(awaitables: Iterable[Awaitable[T]]) -> List[T]:
    """Run awaitables concurrently and return results in submission order.

    The first failure cancels every task still running and is re-raised once
    they have finished unwinding.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
