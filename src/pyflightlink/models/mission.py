"""Mission (waypoint) protocol messages."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from pyflightlink.models._base import Float32, MavMessage, MessageKind, UInt8, UInt16


class MissionRequestList(MavMessage):
    """Ask the vehicle how many mission items it holds."""

    KIND: ClassVar[MessageKind] = MessageKind.MISSION_REQUEST_LIST
    CRC_EXTRA: ClassVar[int] = 132
    WIRE_FORMAT: ClassVar[str] = "BB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("target_system", "target_component")

    target_system: UInt8 = 0
    target_component: UInt8 = 0


class MissionCount(MavMessage):
    """Number of mission items the vehicle holds."""

    KIND: ClassVar[MessageKind] = MessageKind.MISSION_COUNT
    CRC_EXTRA: ClassVar[int] = 221
    WIRE_FORMAT: ClassVar[str] = "HBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("count", "target_system", "target_component")

    target_system: UInt8 = 0
    target_component: UInt8 = 0
    count: UInt16 = 0


class MissionRequest(MavMessage):
    """Ask the vehicle for the mission item at ``seq``."""

    KIND: ClassVar[MessageKind] = MessageKind.MISSION_REQUEST
    CRC_EXTRA: ClassVar[int] = 230
    WIRE_FORMAT: ClassVar[str] = "HBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("seq", "target_system", "target_component")

    target_system: UInt8 = 0
    target_component: UInt8 = 0
    seq: UInt16 = 0


class MissionItem(MavMessage):
    """One waypoint of a mission.

    ``x``/``y``/``z`` are latitude, longitude and altitude for global
    frames.  ``current`` is ``1`` for the active item and ``2`` when the
    item is a guided-mode target rather than part of the stored mission.
    """

    KIND: ClassVar[MessageKind] = MessageKind.MISSION_ITEM
    CRC_EXTRA: ClassVar[int] = 254
    WIRE_FORMAT: ClassVar[str] = "fffffffHHBBBBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "param1",
        "param2",
        "param3",
        "param4",
        "x",
        "y",
        "z",
        "seq",
        "command",
        "target_system",
        "target_component",
        "frame",
        "current",
        "autocontinue",
    )

    target_system: UInt8 = 0
    target_component: UInt8 = 0
    seq: UInt16 = 0
    frame: UInt8 = 0
    command: UInt16 = 0
    current: UInt8 = 0
    autocontinue: UInt8 = 0
    param1: Float32 = 0.0
    param2: Float32 = 0.0
    param3: Float32 = 0.0
    param4: Float32 = 0.0
    x: Float32 = 0.0
    y: Float32 = 0.0
    z: Float32 = 0.0


class MissionAck(MavMessage):
    """Result of a mission write or guided-point command."""

    KIND: ClassVar[MessageKind] = MessageKind.MISSION_ACK
    CRC_EXTRA: ClassVar[int] = 153
    WIRE_FORMAT: ClassVar[str] = "BBB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("target_system", "target_component", "ack_type")

    target_system: UInt8 = 0
    target_component: UInt8 = 0
    ack_type: UInt8 = Field(default=0, description="MAV_MISSION_RESULT, 0 is accepted")
