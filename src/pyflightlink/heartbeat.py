"""Liveness detection from vehicle heartbeats."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pyflightlink._constants import DEFAULT_HEARTBEAT_TIMEOUT, MAV_TYPE_GCS
from pyflightlink.models.telemetry import Heartbeat
from pyflightlink.timers import TimerHandle, TimerService

_logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """Decide when the vehicle is present.

    The first heartbeat from a non-GCS system fixes the vehicle identity
    (unless one was pinned up front).  The vehicle is *found* on the first
    heartbeat after absence and *lost* when ``timeout`` seconds pass
    without one.
    """

    def __init__(
        self,
        *,
        timers: TimerService,
        on_found: Callable[[], None],
        on_lost: Callable[[], None],
        timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
        system_id: int | None = None,
    ) -> None:
        self._timers = timers
        self._on_found = on_found
        self._on_lost = on_lost
        self._timeout = timeout
        self._timer: TimerHandle | None = None
        self.system_id = system_id
        self.component_id: int | None = None
        self.present = False
        self.last: Heartbeat | None = None

    def handle(self, message: Heartbeat, *, system_id: int, component_id: int) -> bool:
        """Record a heartbeat. Returns ``True`` when it came from the tracked vehicle."""
        if message.mav_type == MAV_TYPE_GCS:
            return False
        if self.system_id is None:
            self.system_id = system_id
        elif system_id != self.system_id:
            _logger.debug("Ignoring heartbeat from untracked system %d", system_id)
            return False

        self.component_id = component_id
        self.last = message
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._timers.after(self._timeout, self._expired)

        if not self.present:
            self.present = True
            _logger.info("Vehicle %d found (component %d)", system_id, component_id)
            self._on_found()
        return True

    def close(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()

    def _expired(self) -> None:
        self._timer = None
        if not self.present:
            return
        self.present = False
        _logger.warning("Vehicle %s lost: no heartbeat for %.1fs", self.system_id, self._timeout)
        self._on_lost()
