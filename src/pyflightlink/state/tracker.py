"""Live vehicle state fed by asynchronous telemetry.

The tracker is a plain reducer over telemetry kinds.  It never touches the
exchange layer, so telemetry keeps flowing while a download is in flight.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from pyflightlink._constants import DEFAULT_LOCATION_THROTTLE
from pyflightlink.models._base import MavMessage
from pyflightlink.models.control import mode_name
from pyflightlink.models.telemetry import GlobalPositionInt, Heartbeat, Location, StatusText, SysStatus
from pyflightlink.state.events import LocationChanged, StatusChanged, SysStatusChanged, VehicleEvent
from pyflightlink.state.throttle import Throttle
from pyflightlink.timers import TimerService

_logger = logging.getLogger(__name__)


class VehicleState(BaseModel):
    """Last-known values for one vehicle."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    status: str | None = None
    location: Location | None = None
    battery_percent: float | None = None
    battery_voltage: float | None = None
    custom_mode: int | None = None
    base_mode: int | None = None
    system_status: int | None = None

    @property
    def mode(self) -> str:
        """Current flight mode name, ``"unknown"`` when unmapped or not yet seen."""
        return mode_name(self.custom_mode)


class VehicleStateTracker:
    """Apply telemetry messages to a :class:`VehicleState` and publish changes.

    Position updates are stored immediately but published through a
    :class:`Throttle` so observers see at most one location event per
    window.
    """

    def __init__(
        self,
        *,
        publish: Callable[[VehicleEvent], None],
        timers: TimerService,
        location_throttle: float = DEFAULT_LOCATION_THROTTLE,
    ) -> None:
        self._publish = publish
        self.state = VehicleState()
        self.system_id = 0
        self._location_throttle: Throttle[Location] = Throttle(
            window=location_throttle,
            timers=timers,
            emit=self._emit_location,
        )

    def handle(self, message: MavMessage) -> bool:
        """Apply *message* if it is telemetry. Returns ``True`` when consumed."""
        if isinstance(message, StatusText):
            self._on_status_text(message)
            return True
        if isinstance(message, SysStatus):
            self._on_sys_status(message)
            return True
        if isinstance(message, GlobalPositionInt):
            self._on_position(message)
            return True
        if isinstance(message, Heartbeat):
            self.state.custom_mode = message.custom_mode
            self.state.base_mode = message.base_mode
            self.state.system_status = message.system_status
            return True
        return False

    def close(self) -> None:
        self._location_throttle.cancel()

    def _on_status_text(self, message: StatusText) -> None:
        _logger.info("Received status: %s", message.text)
        self.state.status = message.text
        self._publish(StatusChanged(system_id=self.system_id, text=message.text))

    def _on_sys_status(self, message: SysStatus) -> None:
        # -1 means the autopilot does not estimate remaining charge
        remaining = message.battery_remaining
        self.state.battery_percent = None if remaining < 0 else remaining / 100.0
        self.state.battery_voltage = message.voltage_battery / 1000.0
        self._publish(
            SysStatusChanged(
                system_id=self.system_id,
                battery_percent=self.state.battery_percent,
                battery_voltage=self.state.battery_voltage,
            )
        )

    def _on_position(self, message: GlobalPositionInt) -> None:
        try:
            location = message.to_location()
        except ValidationError:
            _logger.warning("Ignoring out-of-range position: lat=%s lon=%s", message.lat, message.lon)
            return
        self.state.location = location
        self._location_throttle.submit(location)

    def _emit_location(self, location: Location) -> None:
        self._publish(LocationChanged(system_id=self.system_id, location=location))
