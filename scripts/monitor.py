#!/usr/bin/env python3
"""Watch a MAVLink vehicle and print every link event.

Binds a UDP port, waits for the vehicle's heartbeat, downloads its
mission and parameter table, then streams status, battery and position
updates until interrupted.

Usage
-----
Point an autopilot or SITL at the ground-station port and run::

    python scripts/monitor.py --port 14550

Options::

    --host ADDR          Local address to bind (default: 0.0.0.0)
    --port PORT          Local UDP port (default: 14550)
    --remote HOST:PORT   Send to this address instead of the last sender
    --mode NAME          Switch to this flight mode once the vehicle is found
    --mqtt-host HOST     Also publish events to this MQTT broker
    --json               Print events as JSON lines
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyflightlink import EventBus, EventKind, LinkConfig, VehicleEvent, VehicleLink  # noqa: E402
from pyflightlink.exceptions import FlightLinkError  # noqa: E402

_LOG = logging.getLogger("monitor")

DIM = "\033[2m"
RESET = "\033[0m"


def _summary(event: VehicleEvent) -> str:
    data = event.model_dump(exclude={"kind", "system_id", "observed_at"})
    if event.kind == EventKind.WAYPOINTS_DOWNLOADED:
        return f"{len(data['waypoints'])} waypoints"
    if event.kind == EventKind.PARAMETERS_DOWNLOADED:
        received = sum(1 for param in data["parameters"] if param is not None)
        return f"{received}/{len(data['parameters'])} parameters"
    return ", ".join(f"{key}={value}" for key, value in data.items())


def _parse_remote(value: str | None) -> tuple[str | None, int | None]:
    if not value:
        return None, None
    host, _, port = value.rpartition(":")
    if not host or not port.isdigit():
        raise SystemExit(f"--remote must be HOST:PORT, got {value!r}")
    return host, int(port)


async def run(args: argparse.Namespace) -> None:
    remote_host, remote_port = _parse_remote(args.remote)
    overrides: dict[str, Any] = {
        "listen_host": args.host,
        "listen_port": args.port,
        "remote_host": remote_host,
        "remote_port": remote_port,
    }
    if args.mqtt_host:
        overrides["mqtt_host"] = args.mqtt_host
    config = LinkConfig.from_env(**overrides)

    bus = EventBus()

    def _print(event: VehicleEvent) -> None:
        if args.json_mode:
            print(event.model_dump_json())
            return
        stamp = event.observed_at.strftime("%H:%M:%S")
        print(f"{DIM}{stamp}{RESET} [{event.system_id}] {event.kind.value}: {_summary(event)}")

    bus.subscribe(_print)

    async with VehicleLink(config, sink=bus) as link:
        if args.mode:

            def _set_mode(_event: VehicleEvent) -> None:
                try:
                    link.set_mode(args.mode)
                except FlightLinkError as exc:
                    _LOG.error("Cannot set mode: %s", exc)

            bus.subscribe(_set_mode, kinds=[EventKind.VEHICLE_FOUND])

        _LOG.info("Listening on %s:%d", config.listen_host, config.listen_port)
        try:
            while True:
                await asyncio.sleep(10)
                _LOG.debug("Link stats: %s", link.stats)
        finally:
            print(f"\n{DIM}mode={link.mode} stats={link.stats}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Print MAVLink vehicle events from a UDP link.")
    parser.add_argument("--host", default="0.0.0.0", help="Local address to bind")
    parser.add_argument("--port", type=int, default=14550, help="Local UDP port")
    parser.add_argument("--remote", help="Vehicle address as HOST:PORT")
    parser.add_argument("--mode", help="Flight mode to request once the vehicle is found")
    parser.add_argument("--mqtt-host", help="Publish events to this MQTT broker too")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print events as JSON lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print(f"\n{DIM}Done.{RESET}")


if __name__ == "__main__":
    main()
