"""Telemetry messages: heartbeat, system status, status text and position."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from pyflightlink.models._base import Int8, Int16, Int32, MavMessage, MessageKind, UInt8, UInt16, UInt32

# Degrees are carried as integers scaled by 1e7, altitudes in millimetres.
_DEGREES_SCALE = 1e7
_MILLIMETRES_PER_METRE = 1000.0


class Heartbeat(MavMessage):
    """Liveness beacon broadcast by every system on the link."""

    KIND: ClassVar[MessageKind] = MessageKind.HEARTBEAT
    CRC_EXTRA: ClassVar[int] = 50
    WIRE_FORMAT: ClassVar[str] = "IBBBBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "custom_mode",
        "mav_type",
        "autopilot",
        "base_mode",
        "system_status",
        "mavlink_version",
    )

    mav_type: UInt8 = 0
    autopilot: UInt8 = 0
    base_mode: UInt8 = 0
    custom_mode: UInt32 = 0
    system_status: UInt8 = 0
    mavlink_version: UInt8 = 3


class SysStatus(MavMessage):
    """Onboard sensor health and battery state."""

    KIND: ClassVar[MessageKind] = MessageKind.SYS_STATUS
    CRC_EXTRA: ClassVar[int] = 124
    WIRE_FORMAT: ClassVar[str] = "IIIHHhHHHHHHb"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "onboard_control_sensors_present",
        "onboard_control_sensors_enabled",
        "onboard_control_sensors_health",
        "load",
        "voltage_battery",
        "current_battery",
        "drop_rate_comm",
        "errors_comm",
        "errors_count1",
        "errors_count2",
        "errors_count3",
        "errors_count4",
        "battery_remaining",
    )

    onboard_control_sensors_present: UInt32 = 0
    onboard_control_sensors_enabled: UInt32 = 0
    onboard_control_sensors_health: UInt32 = 0
    load: UInt16 = 0
    voltage_battery: UInt16 = Field(default=0, description="Battery voltage in millivolts")
    current_battery: Int16 = Field(default=-1, description="Battery current in 10 mA units, -1 if unknown")
    battery_remaining: Int8 = Field(default=-1, description="Remaining battery in percent, -1 if unknown")
    drop_rate_comm: UInt16 = 0
    errors_comm: UInt16 = 0
    errors_count1: UInt16 = 0
    errors_count2: UInt16 = 0
    errors_count3: UInt16 = 0
    errors_count4: UInt16 = 0


class StatusText(MavMessage):
    """Human readable status line from the autopilot."""

    KIND: ClassVar[MessageKind] = MessageKind.STATUSTEXT
    CRC_EXTRA: ClassVar[int] = 83
    WIRE_FORMAT: ClassVar[str] = "B50s"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("severity", "text")

    severity: UInt8 = 6
    text: str = Field(default="", max_length=50)


class GlobalPositionInt(MavMessage):
    """Filtered global position (scaled integers)."""

    KIND: ClassVar[MessageKind] = MessageKind.GLOBAL_POSITION_INT
    CRC_EXTRA: ClassVar[int] = 104
    WIRE_FORMAT: ClassVar[str] = "IiiiihhhH"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "time_boot_ms",
        "lat",
        "lon",
        "alt",
        "relative_alt",
        "vx",
        "vy",
        "vz",
        "hdg",
    )

    time_boot_ms: UInt32 = 0
    lat: Int32 = 0
    lon: Int32 = 0
    alt: Int32 = 0
    relative_alt: Int32 = 0
    vx: Int16 = 0
    vy: Int16 = 0
    vz: Int16 = 0
    hdg: UInt16 = 0xFFFF

    def to_location(self) -> Location:
        """Decode the scaled integers into a geographic location."""
        return Location(
            latitude=self.lat / _DEGREES_SCALE,
            longitude=self.lon / _DEGREES_SCALE,
            altitude=self.alt / _MILLIMETRES_PER_METRE,
            relative_altitude=self.relative_alt / _MILLIMETRES_PER_METRE,
        )


class Location(BaseModel):
    """A geographic position.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    altitude : float or None
        Altitude above mean sea level in metres.
    relative_altitude : float or None
        Altitude above home in metres.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    altitude: float | None = None
    relative_altitude: float | None = None
