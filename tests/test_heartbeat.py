from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from pyflightlink.heartbeat import HeartbeatMonitor
from pyflightlink.models.telemetry import Heartbeat

if TYPE_CHECKING:
    from conftest import ManualTimers

VEHICLE = Heartbeat(mav_type=2, autopilot=3, custom_mode=0)
GROUND_STATION = Heartbeat(mav_type=6, autopilot=8)


class Recorder:
    def __init__(self) -> None:
        self.found = 0
        self.lost = 0

    def on_found(self) -> None:
        self.found += 1

    def on_lost(self) -> None:
        self.lost += 1


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def monitor(timers: ManualTimers, recorder: Recorder) -> HeartbeatMonitor:
    return HeartbeatMonitor(timers=timers, on_found=recorder.on_found, on_lost=recorder.on_lost, timeout=5.0)


def test_first_heartbeat_finds_vehicle(monitor: HeartbeatMonitor, recorder: Recorder) -> None:
    assert monitor.handle(VEHICLE, system_id=1, component_id=1)
    assert monitor.handle(VEHICLE, system_id=1, component_id=1)

    assert recorder.found == 1
    assert monitor.present
    assert monitor.system_id == 1
    assert monitor.component_id == 1


def test_ground_station_heartbeats_ignored(monitor: HeartbeatMonitor, recorder: Recorder) -> None:
    assert not monitor.handle(GROUND_STATION, system_id=255, component_id=0)

    assert recorder.found == 0
    assert monitor.system_id is None


def test_other_systems_ignored_once_tracking(monitor: HeartbeatMonitor, recorder: Recorder) -> None:
    monitor.handle(VEHICLE, system_id=1, component_id=1)

    assert not monitor.handle(VEHICLE, system_id=2, component_id=1)
    assert monitor.system_id == 1


def test_silence_loses_vehicle_and_next_heartbeat_refinds(
    monitor: HeartbeatMonitor, recorder: Recorder, timers: ManualTimers
) -> None:
    monitor.handle(VEHICLE, system_id=1, component_id=1)
    timers.advance(4.0)
    monitor.handle(VEHICLE, system_id=1, component_id=1)
    timers.advance(4.0)
    assert recorder.lost == 0

    timers.advance(1.0)
    assert recorder.lost == 1
    assert not monitor.present

    monitor.handle(VEHICLE, system_id=1, component_id=1)
    assert recorder.found == 2


def test_pinned_system_id(timers: ManualTimers, recorder: Recorder) -> None:
    monitor = HeartbeatMonitor(
        timers=timers,
        on_found=recorder.on_found,
        on_lost=recorder.on_lost,
        system_id=7,
    )

    assert not monitor.handle(VEHICLE, system_id=1, component_id=1)
    assert monitor.handle(VEHICLE, system_id=7, component_id=1)
    assert recorder.found == 1


def test_close_stops_timer(monitor: HeartbeatMonitor, recorder: Recorder, timers: ManualTimers) -> None:
    monitor.handle(VEHICLE, system_id=1, component_id=1)
    monitor.close()
    timers.advance(10.0)

    assert recorder.lost == 0
    assert timers.active == 0
