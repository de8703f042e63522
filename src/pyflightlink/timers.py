"""One-shot timer service used for retries, throttling and liveness.

The link never sleeps or blocks waiting for a reply; every wait is a
callback scheduled here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it fires."""

    def cancel(self) -> None:
        ...


class TimerService(Protocol):
    """Schedules single-shot callbacks."""

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioTimers:
    """Timer service backed by ``loop.call_later``.

    Callbacks run on the loop thread, serialized with inbound datagram
    handling, so link state needs no locking.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
