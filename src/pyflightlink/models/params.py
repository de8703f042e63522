"""Parameter protocol messages."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from pyflightlink._constants import MAV_PARAM_TYPE_REAL32
from pyflightlink.models._base import Float32, MavMessage, MessageKind, UInt8, UInt16


class ParamRequestList(MavMessage):
    """Ask the vehicle to stream every parameter."""

    KIND: ClassVar[MessageKind] = MessageKind.PARAM_REQUEST_LIST
    CRC_EXTRA: ClassVar[int] = 159
    WIRE_FORMAT: ClassVar[str] = "BB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = ("target_system", "target_component")

    target_system: UInt8 = 0
    target_component: UInt8 = 0


class ParamValue(MavMessage):
    """One parameter, addressed by index into a declared total."""

    KIND: ClassVar[MessageKind] = MessageKind.PARAM_VALUE
    CRC_EXTRA: ClassVar[int] = 220
    WIRE_FORMAT: ClassVar[str] = "fHH16sB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "param_value",
        "param_count",
        "param_index",
        "param_id",
        "param_type",
    )

    param_id: str = Field(default="", max_length=16)
    param_value: Float32 = 0.0
    param_type: UInt8 = MAV_PARAM_TYPE_REAL32
    param_count: UInt16 = 0
    param_index: UInt16 = 0


class ParamSet(MavMessage):
    """Write one parameter; the vehicle answers with a ``ParamValue``."""

    KIND: ClassVar[MessageKind] = MessageKind.PARAM_SET
    CRC_EXTRA: ClassVar[int] = 168
    WIRE_FORMAT: ClassVar[str] = "fBB16sB"
    WIRE_FIELDS: ClassVar[tuple[str, ...]] = (
        "param_value",
        "target_system",
        "target_component",
        "param_id",
        "param_type",
    )

    target_system: UInt8 = 0
    target_component: UInt8 = 0
    param_id: str = Field(default="", max_length=16)
    param_value: Float32 = 0.0
    param_type: UInt8 = MAV_PARAM_TYPE_REAL32
