"""Single-flight queue with bounded retry for remote provider calls.

A RemoteCallQueue lets at most one guarded call run at a time. Waiters are
served strictly in arrival order (asyncio.Lock wakes waiters FIFO), so a
burst of concurrent callers turns into a steady sequence of requests instead
of amplifying rate-limit pressure. Each call is retried with exponential
backoff while it fails with a TRANSIENT or RATE_LIMIT error; QUOTA, AUTH,
NOT_FOUND and FATAL errors propagate on the first occurrence.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from daylog.errors import ErrorKind, RemoteTimeoutError
from daylog.rag.llm_client import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset([ErrorKind.TRANSIENT, ErrorKind.RATE_LIMIT])


class _CallTimeout(Exception):
    """Carries a timeout raised by the call itself past asyncio.wait_for."""

    def __init__(self, original: BaseException) -> None:
        super().__init__(str(original))
        self.original = original


@dataclass
class RetryPolicy:
    """Backoff settings for RemoteCallQueue.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retry).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay, in seconds.
        exponential_base: Growth factor between consecutive delays.
        jitter: Add up to 50% random jitter to each delay.
        spacing_ms: Minimum gap between the starts of consecutive calls.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    spacing_ms: int = 0

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retry number *attempt* (0-indexed)."""
        delay = min(self.base_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, delay * 0.5)
        return delay


class RemoteCallQueue:
    """Serialize and retry remote calls of one kind.

    Args:
        policy: Retry/backoff settings.
        name: Label used in log lines and timeout messages.
    """

    def __init__(self, policy: RetryPolicy | None = None, name: str = "remote") -> None:
        self.policy = policy or RetryPolicy()
        self.name = name
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None
        self._last_start: float | None = None

    @property
    def busy(self) -> bool:
        """True while a call holds the queue."""
        return self._lock is not None and self._lock.locked()

    def _loop_lock(self) -> asyncio.Lock:
        # A queue shared across asyncio.run() calls needs one lock per loop.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run *call* once the queue is free, retrying transient failures.

        *call* is a zero-argument factory returning a fresh awaitable per
        attempt.

        Args:
            call: Coroutine factory performing the remote request.
            timeout: Deadline in seconds covering both the wait for the queue
                and the execution (retries included). None waits forever.

        Raises:
            RemoteTimeoutError: The deadline passed; a call that was still
                queued is never dispatched.
        """
        if timeout is None:
            return await self._run_serialized(call)
        try:
            return await asyncio.wait_for(self._run_marked(call), timeout)
        except _CallTimeout as marked:
            raise marked.original from marked.original.__cause__
        except asyncio.TimeoutError as exc:
            raise RemoteTimeoutError(
                f"{self.name} call timed out after {timeout:.1f}s"
            ) from exc

    async def _run_serialized(self, call: Callable[[], Awaitable[T]]) -> T:
        async with self._loop_lock():
            return await self._with_retry(call)

    async def _run_marked(self, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await self._run_serialized(call)
        except (TimeoutError, asyncio.TimeoutError) as exc:
            raise _CallTimeout(exc) from exc

    async def _with_retry(self, call: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            await self._respect_spacing()
            try:
                return await call()
            except Exception as exc:
                kind = classify_error(exc)
                if kind not in RETRYABLE_KINDS or attempt >= self.policy.max_retries:
                    raise
                delay = self.policy.delay_for(attempt)
                attempt += 1
                logger.warning(
                    "%s call failed (%s: %s); retry %d/%d in %.2fs",
                    self.name,
                    kind.value,
                    exc,
                    attempt,
                    self.policy.max_retries,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _respect_spacing(self) -> None:
        spacing = self.policy.spacing_ms / 1000.0
        now = time.monotonic()
        if spacing > 0 and self._last_start is not None:
            wait = self._last_start + spacing - now
            if wait > 0:
                await asyncio.sleep(wait)
                now = time.monotonic()
        self._last_start = now
