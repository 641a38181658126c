"""
Time sources and timeout helpers.

Every pipeline owns a Clock so cache TTLs and durations can be driven
deterministically in tests (ManualClock). Timeouts race the operation
against the event loop timer.

Timeout is best-effort: the waiting task is cancelled, but anything the
abandoned operation already handed off (threads, other tasks, I/O) keeps
running and its side effects are not retracted.
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union
import asyncio
import inspect
import time

from .errors import ValidationTimeoutError

T = TypeVar("T")


class Clock:
    """Monotonic milliseconds plus wall-clock timestamps."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)


SystemClock = Clock


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0, start_time: Optional[datetime] = None):
        self._now_ms = start_ms
        self._start_ms = start_ms
        self._start_time = start_time or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now_ms(self) -> float:
        return self._now_ms

    def utcnow(self) -> datetime:
        return self._start_time + timedelta(milliseconds=self._now_ms - self._start_ms)

    def advance(self, ms: float) -> None:
        if ms < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now_ms += ms


async def execute_with_timeout(
    operation: Callable[[], Union[Awaitable[T], T]],
    timeout_ms: Optional[float],
    message: str,
    code: Optional[str] = None,
) -> T:
    """
    Run `operation` and wait at most `timeout_ms` for it.

    Plain (non-awaitable) return values pass straight through. A missing or
    non-positive timeout waits indefinitely.

    Raises:
        ValidationTimeoutError: the timer fired before the operation finished
    """
    outcome: Any = operation()
    if not inspect.isawaitable(outcome):
        return outcome

    if not timeout_ms or timeout_ms <= 0:
        return await outcome

    # A TimeoutError raised by the operation itself stays an ordinary exception
    task = asyncio.ensure_future(outcome)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000.0)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task not in done:
        task.cancel()
        raise ValidationTimeoutError(message, timeout_ms=timeout_ms, code=code)
    return task.result()


def elapsed_ms(started: float) -> float:
    """Milliseconds since a time.perf_counter() reading."""
    return (time.perf_counter() - started) * 1000.0
