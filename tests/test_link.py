from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from pyflightlink.codec import pack
from pyflightlink.config import LinkConfig
from pyflightlink.downloads import ParameterState, WaypointState
from pyflightlink.exceptions import ExchangeSupersededError, FlightLinkError, RetryExhaustedError, UnknownModeError
from pyflightlink.link import VehicleLink
from pyflightlink.models import GlobalPositionInt, Heartbeat, Location, MissionItem, ParamValue, StatusText
from pyflightlink.models.control import SetMode
from pyflightlink.models.mission import MissionAck, MissionCount, MissionRequest, MissionRequestList
from pyflightlink.models.params import ParamRequestList, ParamSet
from pyflightlink.state.events import (
    EventKind,
    ExchangeFailed,
    ExchangeFailureReason,
    ParametersDownloaded,
    WaypointsDownloaded,
)

if TYPE_CHECKING:
    from conftest import FakeVehicle, ManualTimers, RecordingSink, RecordingTransport

GCS_SYSTEM_ID = 253
GCS_COMPONENT_ID = 190


def _count(count: int, target_system: int = GCS_SYSTEM_ID) -> MissionCount:
    return MissionCount(target_system=target_system, target_component=GCS_COMPONENT_ID, count=count)


def _item(seq: int, target_system: int = GCS_SYSTEM_ID) -> MissionItem:
    return MissionItem(
        target_system=target_system,
        target_component=GCS_COMPONENT_ID,
        seq=seq,
        frame=3,
        command=16,
        x=-35.36 + seq * 0.001,
        y=149.16,
        z=50.0,
    )


def _param(index: int, total: int) -> ParamValue:
    return ParamValue(param_id=f"P{index}", param_value=float(index), param_count=total, param_index=index)


def _download_all(vehicle: FakeVehicle, waypoints: int = 2, parameters: int = 2) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(waypoints))
    for seq in range(waypoints):
        vehicle.send(_item(seq))
    for index in range(parameters):
        vehicle.send(_param(index, parameters))


# ------------------------------------------------------------------
# Discovery and chained downloads
# ------------------------------------------------------------------


def test_first_heartbeat_starts_waypoint_download(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink
) -> None:
    vehicle.heartbeat(custom_mode=10)

    assert link.present
    assert link.vehicle_system_id == 1
    assert link.mode == "AUTO"
    assert [event.kind for event in sink.events] == [EventKind.VEHICLE_FOUND]
    assert transport.messages == [MissionRequestList(target_system=1, target_component=1)]

    frame = transport.frames[0]
    assert frame[3] == GCS_SYSTEM_ID
    assert frame[4] == GCS_COMPONENT_ID


def test_waypoints_then_parameters(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink
) -> None:
    _download_all(vehicle)

    assert transport.messages == [
        MissionRequestList(target_system=1, target_component=1),
        MissionRequest(target_system=1, target_component=1, seq=0),
        MissionRequest(target_system=1, target_component=1, seq=1),
        ParamRequestList(target_system=1, target_component=1),
    ]

    (waypoints,) = sink.of_kind(EventKind.WAYPOINTS_DOWNLOADED)
    assert isinstance(waypoints, WaypointsDownloaded)
    assert [item.seq for item in waypoints.waypoints] == [0, 1]

    (parameters,) = sink.of_kind(EventKind.PARAMETERS_DOWNLOADED)
    assert isinstance(parameters, ParametersDownloaded)
    assert parameters.as_dict() == {"P0": 0.0, "P1": 1.0}
    assert link.pending_exchange is None


def test_repeated_heartbeats_do_not_restart_download(
    vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink
) -> None:
    vehicle.heartbeat()
    vehicle.heartbeat()
    vehicle.heartbeat()

    assert len(transport.frames) == 1
    assert len(sink.of_kind(EventKind.VEHICLE_FOUND)) == 1


def test_mission_messages_for_another_ground_station_ignored(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport
) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(3, target_system=42))

    assert len(transport.frames) == 1
    assert link.pending_exchange is not None
    assert link.waypoints.waypoints.expected_count == 0


def test_messages_from_other_systems_ignored(link: VehicleLink, vehicle: FakeVehicle, sink: RecordingSink) -> None:
    vehicle.heartbeat()
    vehicle.send(StatusText(text="from elsewhere"), system_id=9)

    assert link.state.status is None
    assert sink.of_kind(EventKind.STATUS_CHANGED) == []


def test_duplicate_item_logged_and_download_continues(
    vehicle: FakeVehicle, sink: RecordingSink, caplog: pytest.LogCaptureFixture
) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(2))
    vehicle.send(_item(0))
    with caplog.at_level(logging.WARNING, logger="pyflightlink.link"):
        vehicle.send(_item(0))
    vehicle.send(_item(1))

    assert "duplicate waypoint" in caplog.text
    (event,) = sink.of_kind(EventKind.WAYPOINTS_DOWNLOADED)
    assert [item.seq for item in event.waypoints] == [0, 1]  # type: ignore[attr-defined]


def test_unanswered_request_publishes_failure_and_moves_on(
    vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink, timers: ManualTimers
) -> None:
    vehicle.heartbeat()
    timers.advance(15.0)

    requests = [message for message in transport.messages if isinstance(message, MissionRequestList)]
    assert len(requests) == 5

    (failure,) = sink.of_kind(EventKind.EXCHANGE_FAILED)
    assert isinstance(failure, ExchangeFailed)
    assert failure.request_kind == "MISSION_REQUEST_LIST"
    assert failure.attempts == 5
    assert failure.reason is ExchangeFailureReason.RETRIES_EXHAUSTED
    assert isinstance(transport.messages[-1], ParamRequestList)
    assert len(sink.of_kind(EventKind.VEHICLE_LOST)) == 1


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


def test_set_mode_sends_code(link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport) -> None:
    vehicle.heartbeat()
    transport.frames.clear()

    link.set_mode("RTL")

    assert transport.messages == [SetMode(target_system=1, custom_mode=11, base_mode=1)]


def test_set_mode_unknown_name_sends_nothing(link: VehicleLink, transport: RecordingTransport) -> None:
    with pytest.raises(UnknownModeError):
        link.set_mode("BOGUS")

    assert transport.frames == []
    assert "RTL" in link.mode_names


def test_set_guided_retries_until_ack(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, timers: ManualTimers
) -> None:
    _download_all(vehicle)
    transport.frames.clear()

    link.set_guided(Location(latitude=-35.3632, longitude=149.1652, altitude=584.0, relative_altitude=30.0))
    timers.advance(3.0)

    sent = transport.messages
    assert len(sent) == 2
    item = sent[0]
    assert isinstance(item, MissionItem)
    assert item.current == 2
    assert item.frame == 3
    assert item.command == 16
    assert item.x == pytest.approx(-35.3632, abs=1e-5)
    assert item.y == pytest.approx(149.1652, abs=1e-4)
    assert item.z == pytest.approx(30.0)

    vehicle.send(MissionAck(target_system=GCS_SYSTEM_ID, target_component=GCS_COMPONENT_ID))
    assert link.pending_exchange is None


def test_set_parameter_completes_on_echo(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport
) -> None:
    _download_all(vehicle)
    transport.frames.clear()

    request = link.set_parameter("P1", 42.0)
    assert transport.messages == [request]
    assert isinstance(request, ParamSet)
    assert request.target_system == 1

    vehicle.send(ParamValue(param_id="P1", param_value=42.0, param_count=2, param_index=1))
    assert link.pending_exchange is None


def test_set_guided_waits_for_running_downloads(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink, timers: ManualTimers
) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(2))

    link.set_guided(Location(latitude=-35.3632, longitude=149.1652, relative_altitude=30.0))
    assert transport.messages[-1] == MissionRequest(target_system=1, target_component=1, seq=0)
    # Not the ack the pending mission request is waiting for.
    vehicle.send(MissionAck(target_system=GCS_SYSTEM_ID, target_component=GCS_COMPONENT_ID))

    vehicle.send(_item(0))
    vehicle.send(_item(1))
    assert isinstance(transport.messages[-1], ParamRequestList)
    vehicle.send(_param(0, 2))
    vehicle.send(_param(1, 2))
    timers.advance(0)

    guided = transport.messages[-1]
    assert isinstance(guided, MissionItem)
    assert guided.current == 2
    vehicle.send(MissionAck(target_system=GCS_SYSTEM_ID, target_component=GCS_COMPONENT_ID))
    assert link.pending_exchange is None

    assert len(sink.of_kind(EventKind.WAYPOINTS_DOWNLOADED)) == 1
    assert len(sink.of_kind(EventKind.PARAMETERS_DOWNLOADED)) == 1
    assert sink.of_kind(EventKind.EXCHANGE_FAILED) == []


def test_command_cut_short_by_download_is_reported(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, sink: RecordingSink, timers: ManualTimers
) -> None:
    _download_all(vehicle)
    link.set_guided(Location(latitude=-35.3632, longitude=149.1652, relative_altitude=30.0))

    link.start_waypoint_download()
    timers.advance(3.0)

    (failure,) = sink.of_kind(EventKind.EXCHANGE_FAILED)
    assert isinstance(failure, ExchangeFailed)
    assert failure.reason is ExchangeFailureReason.SUPERSEDED
    assert failure.request_kind == "MISSION_ITEM"
    assert failure.expected_kind == "MISSION_ACK"
    assert failure.attempts == 1
    guided = [message for message in transport.messages if isinstance(message, MissionItem)]
    assert len(guided) == 1


def test_send_without_transport_raises(timers: ManualTimers) -> None:
    link = VehicleLink(LinkConfig(), timers=timers)

    with pytest.raises(FlightLinkError, match="not open"):
        link.set_mode("AUTO")


# ------------------------------------------------------------------
# Telemetry and diagnostics
# ------------------------------------------------------------------


def test_telemetry_flows_during_download(
    link: VehicleLink, vehicle: FakeVehicle, sink: RecordingSink, timers: ManualTimers
) -> None:
    vehicle.heartbeat()
    vehicle.send(GlobalPositionInt(lat=-353632000, lon=1491652000, alt=584000, relative_alt=30000))
    timers.advance(1.0)

    assert link.pending_exchange is not None
    (event,) = sink.of_kind(EventKind.LOCATION_CHANGED)
    assert event.system_id == 1


def test_malformed_frame_is_counted_and_logged(
    link: VehicleLink, caplog: pytest.LogCaptureFixture
) -> None:
    frame = bytearray(pack(StatusText(text="hello"), sequence=0, system_id=1, component_id=1))
    frame[-1] ^= 0xFF

    with caplog.at_level(logging.WARNING, logger="pyflightlink.codec"):
        link.handle_datagram(bytes(frame))

    assert link.stats.malformed_frames == 1
    assert link.stats.frames_received == 0
    assert "malformed" in caplog.text


def test_unknown_frames_counted(link: VehicleLink) -> None:
    link.handle_datagram(b"\xfe\x02\x00\x01\x01\xc8\xaa\xbb\x00\x00")

    assert link.stats.frames_received == 1
    assert link.stats.unknown_frames == 1


def test_sequence_gaps_counted(link: VehicleLink) -> None:
    link.handle_datagram(pack(Heartbeat(mav_type=2), sequence=250, system_id=1, component_id=1))
    link.handle_datagram(pack(Heartbeat(mav_type=2), sequence=251, system_id=1, component_id=1))
    link.handle_datagram(pack(Heartbeat(mav_type=2), sequence=2, system_id=1, component_id=1))

    assert link.stats.frames_received == 3
    assert link.stats.frames_lost == 6


# ------------------------------------------------------------------
# Awaitable downloads
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_download_waypoints_resolves(link: VehicleLink, vehicle: FakeVehicle) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(1))
    vehicle.send(_item(0))

    task = asyncio.create_task(link.download_waypoints(timeout=5.0))
    await asyncio.sleep(0)
    vehicle.send(_count(1))
    vehicle.send(_item(0))

    waypoints = await task
    assert [item.seq for item in waypoints] == [0]


@pytest.mark.asyncio
async def test_download_parameters_rejects_on_exhaustion(
    link: VehicleLink, vehicle: FakeVehicle, timers: ManualTimers
) -> None:
    vehicle.heartbeat()
    vehicle.send(_count(0))
    vehicle.send(_param(0, 1))

    task = asyncio.create_task(link.download_parameters())
    await asyncio.sleep(0)
    timers.advance(15.0)

    with pytest.raises(RetryExhaustedError):
        await task


@pytest.mark.asyncio
async def test_set_parameter_waits_for_awaited_download(
    link: VehicleLink, vehicle: FakeVehicle, transport: RecordingTransport, timers: ManualTimers
) -> None:
    _download_all(vehicle)

    task = asyncio.create_task(link.download_waypoints(timeout=5.0))
    await asyncio.sleep(0)
    request = link.set_parameter("P1", 42.0)
    assert request not in transport.messages

    vehicle.send(_count(1))
    vehicle.send(_item(0))
    waypoints = await task
    assert [item.seq for item in waypoints] == [0]

    timers.advance(0)
    assert transport.messages[-1] == request
    vehicle.send(ParamValue(param_id="P1", param_value=42.0, param_count=2, param_index=1))
    assert link.pending_exchange is None


@pytest.mark.asyncio
async def test_download_waypoints_rejects_when_superseded(link: VehicleLink, vehicle: FakeVehicle) -> None:
    _download_all(vehicle)

    task = asyncio.create_task(link.download_waypoints())
    await asyncio.sleep(0)
    link.start_parameter_download()

    with pytest.raises(ExchangeSupersededError):
        await task
    assert link.waypoints.state is WaypointState.FAILED
    assert link.parameters.state is ParameterState.AWAITING_FIRST


@pytest.mark.asyncio
async def test_close_cancels_waiters(link: VehicleLink, vehicle: FakeVehicle) -> None:
    vehicle.heartbeat()

    task = asyncio.create_task(link.download_waypoints())
    await asyncio.sleep(0)
    link.close()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert link.pending_exchange is None


# ------------------------------------------------------------------
# UDP
# ------------------------------------------------------------------


class _VehicleEndpoint(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.received: asyncio.Queue[bytes] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: object) -> None:
        self.received.put_nowait(data)


@pytest.mark.asyncio
async def test_udp_round_trip() -> None:
    loop = asyncio.get_running_loop()
    async with VehicleLink(LinkConfig(listen_host="127.0.0.1", listen_port=0)) as link:
        assert link.local_addr is not None
        transport, endpoint = await loop.create_datagram_endpoint(
            _VehicleEndpoint, local_addr=("127.0.0.1", 0)
        )
        try:
            heartbeat = pack(Heartbeat(mav_type=2, autopilot=3), sequence=0, system_id=1, component_id=1)
            transport.sendto(heartbeat, link.local_addr)

            reply = await asyncio.wait_for(endpoint.received.get(), 2.0)
        finally:
            transport.close()

    assert reply[5] == MissionRequestList.KIND
    assert link.present
