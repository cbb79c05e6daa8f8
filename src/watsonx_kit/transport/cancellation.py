# src/watsonx_kit/transport/cancellation.py

"""Cancellation signal and clock abstraction shared by retries and streams."""

import asyncio
import logging
import time
from typing import Protocol

from watsonx_kit.errors import DeadlineExceededError, OperationCancelledError

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Time source used for backoff sleeps and deadlines."""

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        # Loop timers may fire slightly early, so sleep until the clock agrees
        target = time.monotonic() + seconds
        while True:
            remaining = target - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(remaining)


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    A token is cancelled either explicitly through ``cancel()`` or implicitly
    once ``timeout`` seconds have elapsed on its clock. Once cancelled it stays
    cancelled.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._clock: Clock = clock or SystemClock()
        self._deadline = None if timeout is None else self._clock.monotonic() + timeout
        self._event = asyncio.Event()
        self._reason = ""

    def cancel(self, reason: str = "operation cancelled") -> None:
        if not self._event.is_set():
            logger.debug("Cancellation requested: %s", reason)
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._deadline_passed()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock.monotonic())

    def error(self) -> OperationCancelledError | None:
        if self._event.is_set():
            return OperationCancelledError(self._reason)
        if self._deadline_passed():
            return DeadlineExceededError("deadline exceeded")
        return None

    def raise_if_cancelled(self) -> None:
        err = self.error()
        if err is not None:
            raise err

    async def wait(self) -> None:
        """Block until the token is cancelled or its deadline passes."""
        # Loop timers may fire slightly early, so re-check against the clock
        while not self.cancelled:
            remaining = self.remaining()
            if remaining is None:
                await self._event.wait()
                return
            try:
                await asyncio.wait_for(self._event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock.monotonic() >= self._deadline


async def sleep_or_cancel(
    seconds: float,
    cancellation: CancellationToken | None,
    clock: Clock,
) -> None:
    """Sleep on ``clock`` unless the token fires first.

    Raises the token's error when it fires before or during the sleep;
    cancellation wins over a sleep that completes at the same time.
    """
    if cancellation is None:
        await clock.sleep(seconds)
        return

    cancellation.raise_if_cancelled()

    sleeper = asyncio.ensure_future(clock.sleep(seconds))
    watcher = asyncio.ensure_future(cancellation.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()
        await asyncio.gather(sleeper, watcher, return_exceptions=True)

    cancellation.raise_if_cancelled()
