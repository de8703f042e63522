"""pyflightlink - Async Python ground-station client for MAVLink vehicle links."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyflightlink")
except PackageNotFoundError:
    __version__ = "0+local"
from pyflightlink.codec import FrameParser, Packet, pack, unpack
from pyflightlink.config import LinkConfig
from pyflightlink.exceptions import (
    FlightLinkConfigError,
    FlightLinkError,
    FlightLinkTransportError,
    MalformedFrameError,
    ExchangeFailedError,
    ExchangeSupersededError,
    RetryExhaustedError,
    SequenceViolationError,
    UnknownModeError,
)
from pyflightlink.link import LinkStats, VehicleLink
from pyflightlink.models import (
    FlightMode,
    GlobalPositionInt,
    Heartbeat,
    Location,
    MavMessage,
    MessageKind,
    MissionItem,
    ParamValue,
    StatusText,
    SysStatus,
)
from pyflightlink.sinks import EventBus, EventSink
from pyflightlink.state.events import (
    EventKind,
    ExchangeFailed,
    ExchangeFailureReason,
    LocationChanged,
    ParametersDownloaded,
    StatusChanged,
    SysStatusChanged,
    VehicleEvent,
    VehicleFound,
    VehicleLost,
    WaypointsDownloaded,
)
from pyflightlink.state.tracker import VehicleState

__all__ = [
    "__version__",
    "EventBus",
    "EventKind",
    "EventSink",
    "ExchangeFailed",
    "ExchangeFailedError",
    "ExchangeFailureReason",
    "ExchangeSupersededError",
    "FlightLinkConfigError",
    "FlightLinkError",
    "FlightLinkTransportError",
    "FlightMode",
    "FrameParser",
    "GlobalPositionInt",
    "Heartbeat",
    "LinkConfig",
    "LinkStats",
    "Location",
    "LocationChanged",
    "MalformedFrameError",
    "MavMessage",
    "MessageKind",
    "MissionItem",
    "Packet",
    "ParamValue",
    "ParametersDownloaded",
    "RetryExhaustedError",
    "SequenceViolationError",
    "StatusChanged",
    "StatusText",
    "SysStatus",
    "SysStatusChanged",
    "UnknownModeError",
    "VehicleEvent",
    "VehicleFound",
    "VehicleLink",
    "VehicleLost",
    "VehicleState",
    "WaypointsDownloaded",
    "pack",
    "unpack",
]
