"""MAVLink 1.0 wire codec.

Frame layout (little-endian)::

    0xFE | len | seq | sysid | compid | tag | payload[len] | crc_lo | crc_hi

The checksum is the X.25 (CRC-16/MCRF4XX) running accumulator over every
byte after the start marker, folded once more with a per-tag seed byte
(``CRC_EXTRA``).  Peers that disagree on a message layout reject each
other's frames.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from pydantic import ValidationError

from pyflightlink._constants import CHECKSUM_LENGTH, FRAME_OVERHEAD, HEADER_LENGTH, STX, X25_INIT
from pyflightlink._redact import hex_preview
from pyflightlink.exceptions import MalformedFrameError
from pyflightlink.models._base import MavMessage, MessageKind, UnknownMessage
from pyflightlink.models.control import SetMode
from pyflightlink.models.mission import MissionAck, MissionCount, MissionItem, MissionRequest, MissionRequestList
from pyflightlink.models.params import ParamRequestList, ParamSet, ParamValue
from pyflightlink.models.telemetry import GlobalPositionInt, Heartbeat, StatusText, SysStatus

_logger = logging.getLogger(__name__)

_CATALOG: dict[int, type[MavMessage]] = {
    cls.KIND: cls
    for cls in (
        Heartbeat,
        SysStatus,
        SetMode,
        ParamRequestList,
        ParamValue,
        ParamSet,
        GlobalPositionInt,
        MissionItem,
        MissionRequest,
        MissionRequestList,
        MissionCount,
        MissionAck,
        StatusText,
    )
}


def message_class(tag: int) -> type[MavMessage] | None:
    """Return the model registered for *tag*, or ``None`` if unknown."""
    return _CATALOG.get(tag)


def x25_accumulate(byte: int, crc: int) -> int:
    """Fold one byte into the running X.25 checksum."""
    tmp = (byte ^ crc) & 0xFF
    tmp = (tmp ^ (tmp << 4)) & 0xFF
    return ((crc >> 8) ^ (tmp << 8) ^ (tmp << 3) ^ (tmp >> 4)) & 0xFFFF


def x25_crc(data: bytes, crc: int = X25_INIT) -> int:
    """Run :func:`x25_accumulate` over *data*."""
    for byte in data:
        crc = x25_accumulate(byte, crc)
    return crc


def frame_checksum(body: bytes, crc_extra: int) -> int:
    """Checksum of a frame body (length byte through end of payload)."""
    return x25_accumulate(crc_extra, x25_crc(body))


@dataclass(frozen=True)
class Packet:
    """A decoded frame: header fields plus the typed message."""

    sequence: int
    system_id: int
    component_id: int
    tag: int
    message: MavMessage | UnknownMessage

    @property
    def kind(self) -> MessageKind | None:
        """The message kind, ``None`` for tags outside the catalog."""
        if isinstance(self.message, MavMessage):
            return self.message.KIND
        return None


def pack(message: MavMessage, *, sequence: int, system_id: int, component_id: int) -> bytes:
    """Encode *message* into a complete frame of ``8 + payload length`` bytes."""
    payload = message.to_payload()
    body = bytes(
        (
            len(payload),
            sequence & 0xFF,
            system_id & 0xFF,
            component_id & 0xFF,
            int(message.KIND) & 0xFF,
        )
    ) + payload
    crc = frame_checksum(body, message.CRC_EXTRA)
    return bytes((STX,)) + body + struct.pack("<H", crc)


def unpack(data: bytes) -> Packet:
    """Decode exactly one frame.

    Raises :class:`MalformedFrameError` when the start marker, length or
    checksum is wrong.  Frames with a tag outside the catalog are returned
    as :class:`UnknownMessage` without checksum verification, since their
    seed byte is not known.
    """
    if len(data) < FRAME_OVERHEAD:
        raise MalformedFrameError(f"Frame too short: {len(data)} bytes")
    if data[0] != STX:
        raise MalformedFrameError(f"Bad start marker 0x{data[0]:02X}")

    length, sequence, system_id, component_id, tag = data[1:HEADER_LENGTH]
    total = FRAME_OVERHEAD + length
    if len(data) != total:
        raise MalformedFrameError(f"Frame length {len(data)} does not match declared payload {length}", tag=tag)

    payload = bytes(data[HEADER_LENGTH : HEADER_LENGTH + length])
    cls = _CATALOG.get(tag)
    if cls is None:
        return Packet(sequence, system_id, component_id, tag, UnknownMessage(tag=tag, payload=payload))

    expected_length = cls.encoded_length()
    if length != expected_length:
        raise MalformedFrameError(
            f"{cls.KIND.name} payload is {length} bytes, expected {expected_length}",
            tag=tag,
        )

    (received_crc,) = struct.unpack_from("<H", data, total - CHECKSUM_LENGTH)
    computed_crc = frame_checksum(bytes(data[1 : total - CHECKSUM_LENGTH]), cls.CRC_EXTRA)
    if received_crc != computed_crc:
        raise MalformedFrameError(
            f"{cls.KIND.name} checksum mismatch: got 0x{received_crc:04X}, computed 0x{computed_crc:04X}",
            tag=tag,
        )

    try:
        message = cls.from_payload(payload)
    except (struct.error, ValidationError) as exc:
        raise MalformedFrameError(f"{cls.KIND.name} payload failed to decode: {exc}", tag=tag) from exc
    return Packet(sequence, system_id, component_id, tag, message)


class FrameParser:
    """Incremental deframer for byte streams (serial, radio, datagrams).

    Bytes before a start marker are skipped.  A malformed frame is logged,
    its start byte dropped, and parsing resumes at the next marker.  Frames
    with an unknown tag carry no checksum the parser can verify, so one is
    only accepted when no complete, valid catalog frame starts inside it.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.malformed = 0

    def feed(self, data: bytes) -> list[Packet]:
        """Append *data* and return every complete frame now available."""
        self._buffer.extend(data)
        packets: list[Packet] = []
        buf = self._buffer
        while buf:
            start = buf.find(STX)
            if start < 0:
                buf.clear()
                break
            if start:
                del buf[:start]
            if len(buf) < FRAME_OVERHEAD:
                break
            total = FRAME_OVERHEAD + buf[1]
            if len(buf) < total:
                break
            frame = bytes(buf[:total])
            try:
                packet = unpack(frame)
            except MalformedFrameError as exc:
                self.malformed += 1
                _logger.warning("Dropping malformed frame: %s (%s)", exc, hex_preview(frame))
                del buf[:1]
                continue
            if packet.kind is None and _contains_valid_frame(buf, total):
                _logger.debug("Skipping unverified tag %d hiding a valid frame (%s)", packet.tag, hex_preview(frame))
                del buf[:1]
                continue
            packets.append(packet)
            del buf[:total]
        return packets


def _contains_valid_frame(buf: bytearray, end: int) -> bool:
    """Whether a complete catalog frame that checks out starts in ``buf[1:end]``."""
    start = buf.find(STX, 1, end)
    while start > 0:
        if len(buf) - start >= FRAME_OVERHEAD and buf[start + 5] in _CATALOG:
            total = FRAME_OVERHEAD + buf[start + 1]
            if len(buf) - start >= total:
                try:
                    unpack(bytes(buf[start : start + total]))
                except MalformedFrameError:
                    pass
                else:
                    return True
        start = buf.find(STX, start + 1, end)
    return False
