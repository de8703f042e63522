"""Trailing-edge throttle for high-frequency streams.

The first value submitted in a quiet period opens a window; values
submitted inside the window replace the pending one; when the window
closes the latest value is emitted once.  Intermediate values are
dropped, never queued.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

from pyflightlink.timers import TimerHandle, TimerService

T = TypeVar("T")


class Throttle(Generic[T]):
    def __init__(self, *, window: float, timers: TimerService, emit: Callable[[T], None]) -> None:
        self._window = window
        self._timers = timers
        self._emit = emit
        self._timer: TimerHandle | None = None
        self._latest: T | None = None
        self._has_value = False

    @property
    def is_pending(self) -> bool:
        return self._has_value

    def submit(self, value: T) -> None:
        self._latest = value
        self._has_value = True
        if self._timer is None:
            self._timer = self._timers.after(self._window, self._flush)

    def cancel(self) -> None:
        """Drop the pending value and close the window without emitting."""
        timer = self._timer
        self._timer = None
        self._latest = None
        self._has_value = False
        if timer is not None:
            timer.cancel()

    def _flush(self) -> None:
        self._timer = None
        if not self._has_value:
            return
        value = self._latest
        self._latest = None
        self._has_value = False
        self._emit(value)  # type: ignore[arg-type]
