"""
Serialized request queue in front of the rate-limited Gripp API.

A single scheduler task dispatches pending requests in FIFO order while
keeping at most `max_concurrent` requests in flight and at least
`min_interval` seconds between consecutive dispatches.

Each queued request moves through a small state machine:

    IDLE -> WAITING -> DISPATCHED -> SUCCESS
                                  -> RETRYING -> WAITING (at the head)
                                  -> FAILED
    any non-final state -> CANCELLED

Retry decisions are made by `RetryPolicy.decide`, a pure function, so the
backoff rules can be tested without timers.
"""

import asyncio
import random
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from gripp_hours.core.config import settings
from gripp_hours.core.exceptions import (
    RateLimitedError,
    RequestCancelledError,
    TransientUpstreamError,
)
from gripp_hours.core.logging import get_logger

logger = get_logger(__name__)


class RequestState(str, Enum):
    """Lifecycle of a queued request."""

    IDLE = "idle"
    WAITING = "waiting"
    DISPATCHED = "dispatched"
    SUCCESS = "success"
    RETRYING = "retrying"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CancellationToken:
    """
    Caller-supplied cancellation signal.

    Cancelling while a request is queued or waiting out a backoff rejects it
    immediately; cancelling while it is in flight cancels the HTTP call.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class RetryDecision:
    retry: bool
    delay: float = 0.0
    reason: str = ""


@dataclass
class RetryPolicy:
    """
    Retry rules for failed dispatches. Delays are in seconds.

    - Transient failures (503, network) retry after a fixed delay.
    - Rate limiting (429) backs off exponentially with jitter, or for the
      server's Retry-After, whichever is longer.
    - Everything else fails immediately.
    - At most `max_attempts` retries per request.
    """

    max_attempts: int = 5
    retry_delay: float = 2.0
    rate_limit_base_delay: float = 3.0
    rate_limit_jitter: float = 1.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.QUEUE_MAX_RETRY_ATTEMPTS,
            retry_delay=settings.QUEUE_RETRY_DELAY_MS / 1000,
            rate_limit_base_delay=settings.QUEUE_RATE_LIMIT_BASE_DELAY_MS / 1000,
            rate_limit_jitter=settings.QUEUE_RATE_LIMIT_JITTER_MS / 1000,
        )

    def decide(
        self,
        error: BaseException,
        retries: int,
        rate_limit_retries: int = 0,
        rng: Callable[[], float] = random.random,
    ) -> RetryDecision:
        if retries >= self.max_attempts:
            return RetryDecision(False, reason=f"gave up after {retries} retries")

        if isinstance(error, RateLimitedError):
            backoff = self.rate_limit_base_delay * (2**rate_limit_retries)
            backoff += rng() * self.rate_limit_jitter
            delay = max(backoff, error.retry_after or 0.0)
            return RetryDecision(True, delay, "rate limited")

        if isinstance(error, TransientUpstreamError):
            return RetryDecision(True, self.retry_delay, "transient failure")

        return RetryDecision(False, reason="not retryable")


@dataclass(eq=False)
class QueuedRequest:
    request: Any
    future: asyncio.Future
    token: Optional[CancellationToken] = None
    state: RequestState = RequestState.IDLE
    attempts: int = 0
    retries: int = 0
    rate_limit_retries: int = 0
    not_before: float = 0.0
    task: Optional[asyncio.Task] = None
    history: list[RequestState] = field(default_factory=list)

    def transition(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def label(self) -> str:
        return getattr(self.request, "method", type(self.request).__name__)


Executor = Callable[[Any], Awaitable[Any]]


class RequestQueue:
    """
    FIFO dispatcher with spacing, a concurrency cap and retries.

    Args:
        executor: Coroutine function performing one call. It signals
            failures with the service's exception taxonomy.
        min_interval: Minimum seconds between two dispatches
        max_concurrent: Maximum requests in flight
        retry_policy: Retry rules; the caller decides the attempt bound
        clock: Monotonic time source
        rng: Jitter source in [0, 1)
    """

    def __init__(
        self,
        executor: Executor,
        *,
        min_interval: float = settings.QUEUE_MIN_INTERVAL_MS / 1000,
        max_concurrent: int = settings.QUEUE_MAX_CONCURRENT,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._executor = executor
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._rng = rng

        self._pending: deque[QueuedRequest] = deque()
        self._in_flight = 0
        self._last_dispatch: Optional[float] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._scheduler: Optional[asyncio.Task] = None
        self._counters = {
            "dispatched": 0,
            "succeeded": 0,
            "failed": 0,
            "retried": 0,
            "cancelled": 0,
        }

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def pending(self) -> int:
        return len(self._pending)

    def stats(self) -> dict[str, int]:
        return {"pending": self.pending, "in_flight": self._in_flight, **self._counters}

    async def enqueue(self, request: Any, token: Optional[CancellationToken] = None) -> Any:
        """
        Queue a request and wait for its final outcome.

        Raises:
            RequestCancelledError: if `token` is cancelled before completion
            Exception: the executor's error once retries are exhausted or
                the error is not retryable
        """
        if token is not None and token.cancelled:
            raise RequestCancelledError(f"Request {getattr(request, 'method', '')} cancelled")

        loop = asyncio.get_running_loop()
        item = QueuedRequest(request=request, future=loop.create_future(), token=token)
        item.transition(RequestState.WAITING)
        self._pending.append(item)
        self._ensure_scheduler()
        self._notify()

        try:
            if token is None:
                return await item.future
            return await self._await_with_token(item, token)
        except asyncio.CancelledError:
            self._cancel_item(item)
            raise

    async def aclose(self) -> None:
        """Reject everything still queued and stop the scheduler."""
        while self._pending:
            self._cancel_item(self._pending[0])
        if self._scheduler is not None and not self._scheduler.done():
            self._scheduler.cancel()
            try:
                await self._scheduler
            except asyncio.CancelledError:
                pass

    async def _await_with_token(self, item: QueuedRequest, token: CancellationToken) -> Any:
        cancel_waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait(
                {item.future, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_waiter.cancel()

        if item.future.done() and not item.future.cancelled():
            return item.future.result()

        self._cancel_item(item)
        raise RequestCancelledError(f"Request {item.label} cancelled")

    def _cancel_item(self, item: QueuedRequest) -> None:
        if item.state in (RequestState.SUCCESS, RequestState.FAILED, RequestState.CANCELLED):
            return
        was_waiting = item.state == RequestState.WAITING
        item.transition(RequestState.CANCELLED)
        try:
            self._pending.remove(item)
        except ValueError:
            pass
        if item.task is not None and not item.task.done():
            item.task.cancel()
        if not item.future.done():
            item.future.cancel()
        self._counters["cancelled"] += 1
        logger.info(
            f"Cancelled {item.label} while {'queued' if was_waiting else 'in flight'}"
        )
        self._notify()

    def _notify(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def _ensure_scheduler(self) -> None:
        if self._scheduler is None or self._scheduler.done():
            self._wakeup = asyncio.Event()
            self._scheduler = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self._pending:
            self._wakeup.clear()

            if self._in_flight >= self.max_concurrent:
                await self._wakeup.wait()
                continue

            head = self._pending[0]
            if head.future.done():
                self._pending.popleft()
                continue

            now = self._clock()
            wait = head.not_before - now
            if self._last_dispatch is not None:
                wait = max(wait, self.min_interval - (now - self._last_dispatch))

            if wait > 0:
                await self._sleep(wait)
                continue

            self._dispatch(self._pending.popleft())

    async def _sleep(self, seconds: float) -> None:
        # Wakes early when the queue changes (e.g. a cancellation at the head)
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _dispatch(self, item: QueuedRequest) -> None:
        self._in_flight += 1
        self._last_dispatch = self._clock()
        item.attempts += 1
        item.transition(RequestState.DISPATCHED)
        self._counters["dispatched"] += 1
        logger.debug(f"Dispatching {item.label} (attempt {item.attempts})")
        item.task = asyncio.get_running_loop().create_task(self._execute(item))

    async def _execute(self, item: QueuedRequest) -> None:
        try:
            result = await self._executor(item.request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._handle_failure(item, e)
        else:
            item.transition(RequestState.SUCCESS)
            self._counters["succeeded"] += 1
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._in_flight -= 1
            self._notify()

    def _handle_failure(self, item: QueuedRequest, error: Exception) -> None:
        if item.future.done():
            return

        decision = self.retry_policy.decide(
            error, item.retries, item.rate_limit_retries, self._rng
        )

        if decision.retry:
            item.transition(RequestState.RETRYING)
            item.retries += 1
            if isinstance(error, RateLimitedError):
                item.rate_limit_retries += 1
            item.not_before = self._clock() + decision.delay
            self._counters["retried"] += 1
            logger.warning(
                f"{item.label} {decision.reason}: {error}. Retrying in "
                f"{decision.delay:.1f}s (retry {item.retries}/{self.retry_policy.max_attempts})"
            )
            item.transition(RequestState.WAITING)
            self._pending.appendleft(item)
            self._ensure_scheduler()
            return

        item.transition(RequestState.FAILED)
        self._counters["failed"] += 1
        logger.error(f"{item.label} failed ({decision.reason}): {error}")
        item.future.set_exception(error)
