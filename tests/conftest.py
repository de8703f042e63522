from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from pyflightlink.codec import pack, unpack
from pyflightlink.config import LinkConfig
from pyflightlink.link import VehicleLink
from pyflightlink.models._base import MavMessage
from pyflightlink.models.telemetry import Heartbeat
from pyflightlink.state.events import EventKind, VehicleEvent

VEHICLE_SYSTEM_ID = 1
VEHICLE_COMPONENT_ID = 1


@dataclass
class _ManualHandle:
    due: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Timer service driven by :meth:`advance` instead of a clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[_ManualHandle] = []

    def after(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def active(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled and not handle.fired)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and not h.fired and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.now = handle.due
            handle.fired = True
            handle.callback()
        self.now = target


class RecordingTransport:
    def __init__(self) -> None:
        self.frames: list[bytes] = []

    def send_frame(self, data: bytes) -> None:
        self.frames.append(data)

    @property
    def messages(self) -> list[MavMessage]:
        return [unpack(frame).message for frame in self.frames]  # type: ignore[misc]


@dataclass
class RecordingSink:
    events: list[VehicleEvent] = field(default_factory=list)

    def publish(self, event: VehicleEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> list[VehicleEvent]:
        return [event for event in self.events if event.kind == kind]


class FakeVehicle:
    """Feeds framed messages into a link as if sent by the vehicle."""

    def __init__(self, link: VehicleLink) -> None:
        self._link = link
        self._sequence = 0

    def send(
        self,
        message: MavMessage,
        *,
        system_id: int = VEHICLE_SYSTEM_ID,
        component_id: int = VEHICLE_COMPONENT_ID,
    ) -> None:
        frame = pack(message, sequence=self._sequence, system_id=system_id, component_id=component_id)
        self._sequence = (self._sequence + 1) & 0xFF
        self._link.handle_datagram(frame)

    def heartbeat(self, custom_mode: int = 0) -> None:
        self.send(Heartbeat(mav_type=2, autopilot=3, base_mode=1, custom_mode=custom_mode, system_status=4))


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def link(timers: ManualTimers, transport: RecordingTransport, sink: RecordingSink) -> VehicleLink:
    return VehicleLink(LinkConfig(), sink=sink, transport=transport, timers=timers)


@pytest.fixture
def vehicle(link: VehicleLink) -> FakeVehicle:
    return FakeVehicle(link)
