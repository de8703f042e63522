"""UDP datagram transport for MAVLink frames."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from pyflightlink._redact import hex_preview
from pyflightlink.exceptions import FlightLinkTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can put one encoded frame on the wire."""

    def send_frame(self, data: bytes) -> None:
        ...


class UdpTransport(asyncio.DatagramProtocol):
    """Fire-and-forget UDP endpoint.

    Inbound datagrams are handed to ``on_datagram`` on the event loop.
    Outbound frames go to the configured remote address, or to the last
    peer heard from when no remote is configured (the usual setup for an
    autopilot or SITL that streams to a ground-station port).
    """

    def __init__(
        self,
        *,
        on_datagram: Callable[[bytes], None],
        remote_addr: tuple[str, int] | None = None,
    ) -> None:
        self._on_datagram = on_datagram
        self._remote_addr = remote_addr
        self._peer: tuple[str, int] | None = remote_addr
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    @property
    def peer(self) -> tuple[str, int] | None:
        return self._peer

    @property
    def local_addr(self) -> tuple[str, int] | None:
        """Bound address, useful after binding port 0."""
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    async def open(self, host: str, port: int) -> None:
        """Bind the local endpoint."""
        loop = asyncio.get_running_loop()
        try:
            await loop.create_datagram_endpoint(lambda: self, local_addr=(host, port))
        except OSError as exc:
            raise FlightLinkTransportError(f"Cannot bind UDP {host}:{port}: {exc}") from exc
        _logger.debug("UDP endpoint bound on %s:%d", host, port)

    def close(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is not None:
            transport.close()

    def send_frame(self, data: bytes) -> None:
        transport = self._transport
        if transport is None:
            raise FlightLinkTransportError("Transport is not open")
        if self._peer is None:
            _logger.debug("No peer yet, dropping outbound frame %s", hex_preview(data))
            return
        transport.sendto(data, self._peer)

    # ------------------------------------------------------------------
    # asyncio.DatagramProtocol
    # ------------------------------------------------------------------

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def connection_lost(self, exc: Exception | None) -> None:
        self._transport = None
        if exc is not None:
            _logger.debug("UDP endpoint closed with error", exc_info=exc)

    def datagram_received(self, data: bytes, addr: Any) -> None:
        if self._remote_addr is None:
            self._peer = (addr[0], addr[1])
        self._on_datagram(data)

    def error_received(self, exc: Exception) -> None:
        _logger.debug("UDP error: %s", exc)
