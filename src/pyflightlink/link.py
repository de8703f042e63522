"""High-level async link to one MAVLink vehicle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pyflightlink._constants import MAV_CMD_NAV_WAYPOINT, MAV_FRAME_GLOBAL_RELATIVE_ALT, MISSION_ITEM_GUIDED
from pyflightlink._mqtt import MqttEventPublisher
from pyflightlink._redact import describe
from pyflightlink._transport import Transport, UdpTransport
from pyflightlink.codec import FrameParser, Packet, pack
from pyflightlink.config import LinkConfig
from pyflightlink.downloads.parameters import ParameterDownloader, ParameterState
from pyflightlink.downloads.waypoints import WaypointDownloader
from pyflightlink.exceptions import (
    ExchangeFailedError,
    ExchangeSupersededError,
    FlightLinkError,
    SequenceViolationError,
)
from pyflightlink.exchange import PendingExchange, ReliableExchange
from pyflightlink.heartbeat import HeartbeatMonitor
from pyflightlink.models._base import MavMessage, MessageKind, UnknownMessage
from pyflightlink.models.control import SetMode, mode_code, mode_names
from pyflightlink.models.mission import MissionAck, MissionCount, MissionItem
from pyflightlink.models.params import ParamSet, ParamValue
from pyflightlink.models.telemetry import Heartbeat, Location
from pyflightlink.sinks import EventBus, EventSink
from pyflightlink.state.events import (
    ExchangeFailed,
    ExchangeFailureReason,
    ParametersDownloaded,
    VehicleEvent,
    VehicleFound,
    VehicleLost,
    WaypointsDownloaded,
)
from pyflightlink.state.tracker import VehicleState, VehicleStateTracker
from pyflightlink.timers import AsyncioTimers, TimerService

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LinkStats:
    """Frame counters for diagnostics.

    ``frames_lost`` is derived from gaps in each sender's sequence numbers.
    It is informational only; retries never depend on it.
    """

    frames_received: int = 0
    frames_sent: int = 0
    frames_lost: int = 0
    malformed_frames: int = 0
    unknown_frames: int = 0


class VehicleLink:
    """Async protocol client for one vehicle.

    Usage::

        async with VehicleLink(LinkConfig(listen_port=14550), sink=bus) as link:
            waypoints = await link.download_waypoints()

    All state is owned by the event loop the link runs on: inbound frames,
    retry timers and throttle timers are loop callbacks, so they never
    interleave.
    """

    def __init__(
        self,
        config: LinkConfig | None = None,
        *,
        sink: EventSink | None = None,
        transport: Transport | None = None,
        timers: TimerService | None = None,
    ) -> None:
        self._config = config or LinkConfig()
        self._sink: EventSink = sink if sink is not None else EventBus()
        self._transport = transport
        self._owns_transport = transport is None
        self._timers = timers or AsyncioTimers()
        self._mqtt: MqttEventPublisher | None = None
        self._parser = FrameParser()
        self._sequence = 0
        self._last_sequence: dict[tuple[int, int], int] = {}
        self.stats = LinkStats()

        self._exchange = ReliableExchange(
            send=self.send,
            timers=self._timers,
            attempts=self._config.retry_attempts,
            retry_interval=self._config.retry_interval,
            on_failure=self._on_exchange_failed,
        )
        self._heartbeat = HeartbeatMonitor(
            timers=self._timers,
            on_found=self._on_vehicle_found,
            on_lost=self._on_vehicle_lost,
            timeout=self._config.heartbeat_timeout,
            system_id=self._config.vehicle_system_id,
        )
        self._tracker = VehicleStateTracker(
            publish=self._publish,
            timers=self._timers,
            location_throttle=self._config.location_throttle,
        )
        self._waypoints = WaypointDownloader(
            exchange=self._exchange,
            on_complete=self._on_waypoints_downloaded,
            on_failure=self._on_waypoints_failed,
        )
        self._parameters = ParameterDownloader(
            exchange=self._exchange,
            on_complete=self._on_parameters_downloaded,
            on_failure=self._on_parameters_failed,
            strict_completion=self._config.strict_parameter_completion,
        )
        # Parameters download once the waypoint download that a "found"
        # transition started has finished; both need the single exchange slot.
        self._parameters_after_waypoints = False
        self._waypoint_waiters: list[asyncio.Future[list[MissionItem]]] = []
        self._parameter_waiters: list[asyncio.Future[list[ParamValue | None]]] = []

        self._handlers: dict[MessageKind, Callable[[Any], None]] = {
            MessageKind.STATUSTEXT: self._tracker.handle,
            MessageKind.SYS_STATUS: self._tracker.handle,
            MessageKind.GLOBAL_POSITION_INT: self._tracker.handle,
            MessageKind.MISSION_COUNT: self._on_mission_count,
            MessageKind.MISSION_ITEM: self._on_mission_item,
            MessageKind.MISSION_ACK: self._on_mission_ack,
            MessageKind.PARAM_VALUE: self._parameters.handle_value,
        }

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VehicleLink:
        if self._transport is None:
            udp = UdpTransport(on_datagram=self.handle_datagram, remote_addr=self._config.remote_addr)
            await udp.open(self._config.listen_host, self._config.listen_port)
            self._transport = udp
        await self._ensure_mqtt_started()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()
        publisher = self._mqtt
        self._mqtt = None
        if publisher is not None:
            try:
                await asyncio.get_running_loop().run_in_executor(None, publisher.stop)
            except Exception:
                _logger.debug("MQTT publisher stop failed", exc_info=True)
        transport = self._transport
        if self._owns_transport and isinstance(transport, UdpTransport):
            transport.close()
            self._transport = None

    async def _ensure_mqtt_started(self) -> None:
        if self._config.mqtt_host is None or self._mqtt is not None:
            return
        publisher = MqttEventPublisher(
            host=self._config.mqtt_host,
            port=self._config.mqtt_port,
            topic_prefix=self._config.mqtt_topic_prefix,
            keepalive=self._config.mqtt_keepalive,
            logger=_logger,
        )
        try:
            await asyncio.get_running_loop().run_in_executor(None, publisher.start)
        except Exception:
            _logger.warning("MQTT publisher start failed", exc_info=True)
            return
        self._mqtt = publisher

    def close(self) -> None:
        """Stop timers and cancel anything awaiting a download."""
        self._exchange.reset()
        self._heartbeat.close()
        self._tracker.close()
        for waiter in [*self._waypoint_waiters, *self._parameter_waiters]:
            if not waiter.done():
                waiter.cancel()
        self._waypoint_waiters.clear()
        self._parameter_waiters.clear()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> LinkConfig:
        return self._config

    @property
    def state(self) -> VehicleState:
        return self._tracker.state

    @property
    def mode(self) -> str:
        return self._tracker.state.mode

    @property
    def mode_names(self) -> list[str]:
        """The mode names :meth:`set_mode` accepts."""
        return mode_names()

    @property
    def local_addr(self) -> tuple[str, int] | None:
        """Address the UDP endpoint is bound to, ``None`` for injected transports."""
        transport = self._transport
        if isinstance(transport, UdpTransport):
            return transport.local_addr
        return None

    @property
    def present(self) -> bool:
        return self._heartbeat.present

    @property
    def vehicle_system_id(self) -> int | None:
        return self._heartbeat.system_id

    @property
    def pending_exchange(self) -> PendingExchange | None:
        return self._exchange.pending

    @property
    def waypoints(self) -> WaypointDownloader:
        return self._waypoints

    @property
    def parameters(self) -> ParameterDownloader:
        return self._parameters

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, message: MavMessage) -> None:
        """Frame *message* and hand it to the transport (fire-and-forget)."""
        transport = self._transport
        if transport is None:
            raise FlightLinkError("Link not open. Use 'async with VehicleLink(...) as link:'")
        frame = pack(
            message,
            sequence=self._sequence,
            system_id=self._config.system_id,
            component_id=self._config.component_id,
        )
        self._sequence = (self._sequence + 1) & 0xFF
        _logger.debug("Send: %s", describe(message))
        transport.send_frame(frame)
        self.stats.frames_sent += 1

    def _target(self) -> tuple[int, int]:
        return self._heartbeat.system_id or 0, self._heartbeat.component_id or 0

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_mode(self, name: str) -> None:
        """Ask the vehicle to switch mode.

        Raises :class:`~pyflightlink.exceptions.UnknownModeError` without
        sending anything when *name* is not in the mode table.
        """
        code = mode_code(name)
        target_system, _ = self._target()
        _logger.info("Requesting mode %s (%d)", name, code)
        self.send(SetMode(target_system=target_system, custom_mode=code))

    def set_guided(self, location: Location) -> MissionItem:
        """Fly to *location* in guided mode; retried until the vehicle acks.

        Queued behind any exchange already in flight, so it never cuts a
        running download short.
        """
        target_system, target_component = self._target()
        if location.relative_altitude is not None:
            altitude = location.relative_altitude
        else:
            altitude = location.altitude or 0.0
        item = MissionItem(
            target_system=target_system,
            target_component=target_component,
            seq=0,
            frame=MAV_FRAME_GLOBAL_RELATIVE_ALT,
            command=MAV_CMD_NAV_WAYPOINT,
            current=MISSION_ITEM_GUIDED,
            x=location.latitude,
            y=location.longitude,
            z=altitude,
        )
        self._exchange.enqueue(item, MessageKind.MISSION_ACK)
        return item

    def set_parameter(self, name: str, value: float) -> ParamSet:
        """Write a parameter; retried until the vehicle echoes a value.

        Queued like :meth:`set_guided`.
        """
        target_system, target_component = self._target()
        request = ParamSet(
            target_system=target_system,
            target_component=target_component,
            param_id=name,
            param_value=value,
        )
        self._exchange.enqueue(request, MessageKind.PARAM_VALUE)
        return request

    def start_waypoint_download(self) -> None:
        self._waypoints.start(*self._target())

    def start_parameter_download(self) -> None:
        self._parameters.start(*self._target())

    async def download_waypoints(self, *, timeout: float | None = None) -> list[MissionItem]:
        """Download the vehicle's mission.

        Raises :class:`~pyflightlink.exceptions.RetryExhaustedError` when a
        request goes unanswered,
        :class:`~pyflightlink.exceptions.ExchangeSupersededError` when another
        download takes the exchange first, ``TimeoutError`` after *timeout*
        seconds.
        """
        return await self._run_download(self._waypoint_waiters, self.start_waypoint_download, timeout)

    async def download_parameters(self, *, timeout: float | None = None) -> list[ParamValue | None]:
        """Download the vehicle's parameter table (see :class:`ParameterDownloader`)."""
        return await self._run_download(self._parameter_waiters, self.start_parameter_download, timeout)

    async def _run_download(
        self,
        waiters: list[asyncio.Future[T]],
        start: Callable[[], None],
        timeout: float | None,
    ) -> T:
        waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        waiters.append(waiter)
        try:
            start()
            return await asyncio.wait_for(waiter, timeout)
        finally:
            if waiter in waiters:
                waiters.remove(waiter)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_datagram(self, data: bytes) -> None:
        """Deframe raw bytes and dispatch every complete frame."""
        packets = self._parser.feed(data)
        self.stats.malformed_frames = self._parser.malformed
        for packet in packets:
            self.handle_packet(packet)

    def handle_packet(self, packet: Packet) -> None:
        self.stats.frames_received += 1
        self._track_sequence(packet)

        message = packet.message
        if isinstance(message, UnknownMessage):
            self.stats.unknown_frames += 1
            return
        if isinstance(message, Heartbeat):
            if self._heartbeat.handle(message, system_id=packet.system_id, component_id=packet.component_id):
                self._tracker.handle(message)
            return

        vehicle = self._heartbeat.system_id
        if vehicle is not None and packet.system_id != vehicle:
            _logger.debug("Ignoring %s from untracked system %d", message.KIND.name, packet.system_id)
            return
        handler = self._handlers.get(message.KIND)
        if handler is not None:
            handler(message)

    def _track_sequence(self, packet: Packet) -> None:
        key = (packet.system_id, packet.component_id)
        last = self._last_sequence.get(key)
        self._last_sequence[key] = packet.sequence
        if last is None:
            return
        gap = (packet.sequence - last - 1) & 0xFF
        if gap and gap < 0xFF:
            self.stats.frames_lost += gap

    def _addressed_to_us(self, target_system: int) -> bool:
        return target_system == self._config.system_id

    def _on_mission_count(self, message: MissionCount) -> None:
        if self._addressed_to_us(message.target_system):
            self._waypoints.handle_count(message)

    def _on_mission_item(self, message: MissionItem) -> None:
        if not self._addressed_to_us(message.target_system):
            return
        _logger.debug("Receive: %s", describe(message))
        try:
            self._waypoints.handle_item(message)
        except SequenceViolationError as exc:
            _logger.warning("Ignoring duplicate waypoint response: %s", exc)

    def _on_mission_ack(self, message: MissionAck) -> None:
        if not self._addressed_to_us(message.target_system):
            return
        if self._exchange.offer(message) is not None:
            _logger.info("Vehicle acknowledged command (result %d)", message.ack_type)

    # ------------------------------------------------------------------
    # State machine callbacks
    # ------------------------------------------------------------------

    def _publish(self, event: VehicleEvent) -> None:
        self._sink.publish(event)
        if self._mqtt is not None:
            self._mqtt.publish(event)

    def _on_vehicle_found(self) -> None:
        system_id = self._heartbeat.system_id or 0
        self._tracker.system_id = system_id
        self._publish(VehicleFound(system_id=system_id))

        # First contact, download everything from the vehicle.
        self._waypoints.reset()
        self._parameters.reset()
        self._parameters_after_waypoints = True
        self.start_waypoint_download()

    def _on_vehicle_lost(self) -> None:
        self._publish(VehicleLost(system_id=self._heartbeat.system_id or 0))

    def _on_exchange_failed(self, _request: MavMessage, error: ExchangeFailedError) -> None:
        if isinstance(error, ExchangeSupersededError):
            reason = ExchangeFailureReason.SUPERSEDED
        else:
            reason = ExchangeFailureReason.RETRIES_EXHAUSTED
        self._publish(
            ExchangeFailed(
                system_id=self._heartbeat.system_id or 0,
                request_kind=error.request_kind,
                expected_kind=error.expected_kind,
                attempts=error.attempts,
                reason=reason,
            )
        )

    def _on_waypoints_downloaded(self, waypoints: list[MissionItem]) -> None:
        self._publish(WaypointsDownloaded(system_id=self._heartbeat.system_id or 0, waypoints=waypoints))
        _resolve(self._waypoint_waiters, waypoints)
        self._start_chained_parameters()

    def _on_waypoints_failed(self, error: ExchangeFailedError) -> None:
        _reject(self._waypoint_waiters, error)
        self._start_chained_parameters()

    def _start_chained_parameters(self) -> None:
        if not self._parameters_after_waypoints:
            return
        self._parameters_after_waypoints = False
        if self._parameters.state in (ParameterState.AWAITING_FIRST, ParameterState.AWAITING_REST):
            return
        self.start_parameter_download()

    def _on_parameters_downloaded(self, parameters: list[ParamValue | None]) -> None:
        self._publish(ParametersDownloaded(system_id=self._heartbeat.system_id or 0, parameters=parameters))
        _resolve(self._parameter_waiters, parameters)

    def _on_parameters_failed(self, error: ExchangeFailedError) -> None:
        _reject(self._parameter_waiters, error)


def _resolve(waiters: list[asyncio.Future[T]], result: T) -> None:
    for waiter in waiters:
        if not waiter.done():
            waiter.set_result(result)


def _reject(waiters: list[asyncio.Future[Any]], error: BaseException) -> None:
    for waiter in waiters:
        if not waiter.done():
            waiter.set_exception(error)
