"""Data models for MAVLink messages and decoded values."""

from pyflightlink.models._base import FlightEnum, MavMessage, MessageKind, UnknownMessage
from pyflightlink.models.control import FlightMode, SetMode, mode_code, mode_name, mode_names
from pyflightlink.models.mission import MissionAck, MissionCount, MissionItem, MissionRequest, MissionRequestList
from pyflightlink.models.params import ParamRequestList, ParamSet, ParamValue
from pyflightlink.models.telemetry import GlobalPositionInt, Heartbeat, Location, StatusText, SysStatus

__all__ = [
    "FlightEnum",
    "FlightMode",
    "GlobalPositionInt",
    "Heartbeat",
    "Location",
    "MavMessage",
    "MessageKind",
    "MissionAck",
    "MissionCount",
    "MissionItem",
    "MissionRequest",
    "MissionRequestList",
    "ParamRequestList",
    "ParamSet",
    "ParamValue",
    "SetMode",
    "StatusText",
    "SysStatus",
    "UnknownMessage",
    "mode_code",
    "mode_name",
    "mode_names",
]
