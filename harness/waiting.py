"""Bounded, cancellable polling used by the verifier thread."""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

LOGGER = logging.getLogger(__name__)

Predicate = Callable[[], bool]
AbortCheck = Callable[[], "BaseException | None"]
StateDescriber = Callable[[], str]


class PredicateTimeout(TimeoutError):
    """Raised when a bounded wait does not observe its condition in time."""

    def __init__(
        self,
        description: str,
        elapsed: float,
        timeout: float,
        checks: int,
        last_state: str | None = None,
    ) -> None:
        self.description = description
        self.elapsed = elapsed
        self.timeout = timeout
        self.checks = checks
        self.last_state = last_state
        message = (
            f"Timed out waiting for {description} after {elapsed:.2f}s "
            f"(timeout {timeout:.2f}s, {checks} check(s))"
        )
        if last_state:
            message += f"; last observed {last_state}"
        super().__init__(message)


class WaitCancelled(RuntimeError):
    """Raised when a wait is cancelled before its condition was observed."""

    def __init__(self, reason: str, description: str = "") -> None:
        self.reason = reason
        self.description = description
        target = f" for {description}" if description else ""
        super().__init__(f"Wait{target} cancelled: {reason}")


class PollingWaiter:
    """Blocks the calling thread until a predicate holds, a timeout expires or
    another thread cancels.

    The predicate is evaluated once immediately and then at ``interval``
    boundaries, never more than ``ceil(timeout / interval)`` re-checks per
    call. ``cancel`` may be called from any thread; it wakes a parked waiter
    at once, and every later wait fails until ``reset``.
    """

    def __init__(self, interval: float = 0.05, timeout: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.interval = interval
        self.timeout = timeout
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._cancel_reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._cancel_reason is None:
                self._cancel_reason = reason
        self._cancelled.set()
        LOGGER.debug("Waiter cancelled: %s", reason)

    def reset(self) -> None:
        with self._lock:
            self._cancel_reason = None
        self._cancelled.clear()

    def wait_until(
        self,
        predicate: Predicate,
        *,
        timeout: float | None = None,
        interval: float | None = None,
        description: str | None = None,
        abort: AbortCheck | None = None,
        describe_state: StateDescriber | None = None,
    ) -> float:
        """Block until ``predicate()`` is true and return the elapsed seconds.

        Args:
            predicate: Condition over shared state; must not block.
            timeout: Upper bound in seconds, defaults to the waiter's timeout.
            interval: Re-check period in seconds, defaults to the waiter's interval.
            description: Human-readable name of the condition for error messages.
            abort: Called before each check; a returned exception is raised at once.
            describe_state: Context appended to ``PredicateTimeout`` messages.

        Raises:
            PredicateTimeout: The condition was not observed within ``timeout``.
            WaitCancelled: ``cancel`` was called before the condition held.
        """
        limit = self.timeout if timeout is None else float(timeout)
        period = self.interval if interval is None else float(interval)
        if limit <= 0 or period <= 0:
            raise ValueError("timeout and interval must be > 0")
        label = description or getattr(predicate, "__name__", "condition")

        max_rechecks = math.ceil(limit / period)
        start = time.monotonic()
        deadline = start + limit
        checks = 0
        while True:
            if abort is not None:
                failure = abort()
                if failure is not None:
                    raise failure
            self._raise_if_cancelled(label)

            checks += 1
            if predicate():
                elapsed = time.monotonic() - start
                LOGGER.debug("Observed %s after %.3fs (%d check(s))", label, elapsed, checks)
                return elapsed

            remaining = deadline - time.monotonic()
            if remaining <= 0 or checks - 1 >= max_rechecks:
                elapsed = time.monotonic() - start
                last_state = describe_state() if describe_state is not None else None
                raise PredicateTimeout(label, elapsed, limit, checks, last_state)

            # returns early only when cancelled
            self._cancelled.wait(min(period, remaining))

    def _raise_if_cancelled(self, label: str) -> None:
        if self._cancelled.is_set():
            with self._lock:
                reason = self._cancel_reason or "cancelled"
            raise WaitCancelled(reason, label)
