"""Base model and enums for MAVLink 1.0 messages.

Every message model inherits from :class:`MavMessage` which provides:

* ``KIND`` - the message-type tag carried in byte 5 of the frame.
* ``CRC_EXTRA`` - the per-tag seed byte folded into the checksum.
* ``WIRE_FORMAT`` / ``WIRE_FIELDS`` - the fixed little-endian payload
  layout.  MAVLink 1.0 orders fields by descending type size, which
  differs from the declaration order of the model fields.
* ``to_payload`` / ``from_payload`` converting between the typed model
  and the raw payload bytes.

Numeric field aliases (``UInt8``, ``Int32``, ``Float32`` ...) validate
the value range on construction so a model that exists can always be
packed.  ``Float32`` rounds to single precision so a decoded message
compares equal to the one that was encoded.

Protocol enums derive from :class:`FlightEnum`; a code the vehicle sends
without a mapped member decodes to that enum's ``UNKNOWN`` (``-1``).
"""

from __future__ import annotations

import enum
import struct
from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _to_float32(value: float) -> float:
    try:
        return float(struct.unpack("<f", struct.pack("<f", value))[0])
    except OverflowError as exc:
        raise ValueError(f"{value} does not fit in a 32-bit float") from exc


UInt8 = Annotated[int, Field(ge=0, le=0xFF)]
UInt16 = Annotated[int, Field(ge=0, le=0xFFFF)]
UInt32 = Annotated[int, Field(ge=0, le=0xFFFFFFFF)]
Int8 = Annotated[int, Field(ge=-0x80, le=0x7F)]
Int16 = Annotated[int, Field(ge=-0x8000, le=0x7FFF)]
Int32 = Annotated[int, Field(ge=-0x80000000, le=0x7FFFFFFF)]
Float32 = Annotated[float, AfterValidator(_to_float32)]


class MessageKind(enum.IntEnum):
    """Message-type tags the link understands."""

    HEARTBEAT = 0
    SYS_STATUS = 1
    SET_MODE = 11
    PARAM_REQUEST_LIST = 21
    PARAM_VALUE = 22
    PARAM_SET = 23
    GLOBAL_POSITION_INT = 33
    MISSION_ITEM = 39
    MISSION_REQUEST = 40
    MISSION_REQUEST_LIST = 43
    MISSION_COUNT = 44
    MISSION_ACK = 47
    STATUSTEXT = 253


class FlightEnum(enum.IntEnum):
    """Protocol enum that tolerates codes outside its table.

    Subclasses declare ``UNKNOWN = -1``; lookups of unmapped values return
    it instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FlightEnum:
        if hasattr(cls, "UNKNOWN"):
            unknown: FlightEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class MavMessage(BaseModel):
    """Base for typed MAVLink message payloads."""

    KIND: ClassVar[MessageKind]
    CRC_EXTRA: ClassVar[int]
    WIRE_FORMAT: ClassVar[str]
    WIRE_FIELDS: ClassVar[tuple[str, ...]]

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def encoded_length(cls) -> int:
        """Fixed payload length in bytes for this tag."""
        return struct.calcsize("<" + cls.WIRE_FORMAT)

    def to_payload(self) -> bytes:
        """Pack the fields in wire order, little-endian."""
        values: list[Any] = []
        for name in self.WIRE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, str):
                value = value.encode("ascii", errors="replace")
            values.append(value)
        return struct.pack("<" + self.WIRE_FORMAT, *values)

    @classmethod
    def from_payload(cls, payload: bytes) -> MavMessage:
        """Unpack a payload of exactly :meth:`encoded_length` bytes."""
        unpacked = struct.unpack("<" + cls.WIRE_FORMAT, payload)
        values: dict[str, Any] = {}
        for name, value in zip(cls.WIRE_FIELDS, unpacked, strict=True):
            if isinstance(value, bytes):
                value = value.split(b"\x00", 1)[0].decode("ascii", errors="replace")
            values[name] = value
        return cls.model_validate(values)


class UnknownMessage(BaseModel):
    """A frame whose tag is outside the catalog, passed through unexamined."""

    model_config = ConfigDict(frozen=True)

    tag: int
    payload: bytes = b""
