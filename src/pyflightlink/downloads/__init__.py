"""Sequential bulk-transfer state machines built on the exchange layer."""

from pyflightlink.downloads.parameters import ParameterDownloader, ParameterState, ParameterTable
from pyflightlink.downloads.waypoints import WaypointDownloader, WaypointSet, WaypointState

__all__ = [
    "ParameterDownloader",
    "ParameterState",
    "ParameterTable",
    "WaypointDownloader",
    "WaypointSet",
    "WaypointState",
]
