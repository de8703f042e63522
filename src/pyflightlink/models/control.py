"""Mode change message and the flight-mode table."""

from __future__ import annotations

from typing import ClassVar

from pyflightlink._constants import MAV_MODE_FLAG_CUSTOM_MODE_ENABLED
from pyflightlink.exceptions import UnknownModeError
from pyflightlink.models._base import FlightEnum, MavMessage, MessageKind, UInt8, UInt32

UNKNOWN_MODE_NAME = "unknown"


class FlightMode(FlightEnum):
    """Autopilot custom-mode codes understood by the link."""

    UNKNOWN = -1
    MANUAL = 0
    CIRCLE = 1
    STABILIZE = 2
    FLY_BY_WIRE_A = 5
    FLY_BY_WIRE_B = 6
    AUTO = 10
    RTL = 11
    LOITER = 12
    GUIDED = 15
    INITIALIZING = 16


def mode_name(code: int | None) -> str:
    """Translate a custom-mode code into its name, ``"unknown"`` if unmapped."""
    if code is None:
        return UNKNOWN_MODE_NAME
    mode = FlightMode(code)
    if mode is FlightMode.UNKNOWN:
        return UNKNOWN_MODE_NAME
    return mode.name


def mode_code(name: str) -> int:
    """Translate a mode name into its custom-mode code.

    Raises :class:`UnknownModeError` for names outside the table.
    """
    mode = FlightMode.__members__.get(name)
    if mode is None or mode is FlightMode.UNKNOWN:
        raise UnknownModeError(name)
    return int(mode)


def mode_names() -> list[str]:
    """Mode names accepted by :func:`mode_code`."""
    return [mode.name for mode in FlightMode if mode is not FlightMode.UNKNOWN]


class SetMode(MavMessage):
    """Switch the vehicle to a custom mode."""

    KIND: ClassVar[MessageKind] = MessageKind.SET_MODE
    CRC_EXTRA: ClassVar[int] = 89
    WIRE_FORMAT: ClassVar[str] = "IBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("custom_mode", "target_system", "base_mode")

    target_system: UInt8 = 0
    base_mode: UInt8 = MAV_MODE_FLAG_CUSTOM_MODE_ENABLED
    custom_mode: UInt32 = 0
