"""Events published by a vehicle link.

Every observer-facing change goes out as one of these frozen models
through the link's :class:`~pyflightlink.sinks.EventSink`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyflightlink.models.mission import MissionItem
from pyflightlink.models.params import ParamValue
from pyflightlink.models.telemetry import Location


class EventKind(StrEnum):
    VEHICLE_FOUND = "vehicle_found"
    VEHICLE_LOST = "vehicle_lost"
    STATUS_CHANGED = "status_changed"
    SYS_STATUS_CHANGED = "sys_status_changed"
    LOCATION_CHANGED = "location_changed"
    WAYPOINTS_DOWNLOADED = "waypoints_downloaded"
    PARAMETERS_DOWNLOADED = "parameters_downloaded"
    EXCHANGE_FAILED = "exchange_failed"


class VehicleEvent(BaseModel):
    """Common fields of every link event."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    system_id: int = Field(..., description="Vehicle system id, 0 before the first heartbeat")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class VehicleFound(VehicleEvent):
    kind: Literal[EventKind.VEHICLE_FOUND] = EventKind.VEHICLE_FOUND


class VehicleLost(VehicleEvent):
    kind: Literal[EventKind.VEHICLE_LOST] = EventKind.VEHICLE_LOST


class StatusChanged(VehicleEvent):
    kind: Literal[EventKind.STATUS_CHANGED] = EventKind.STATUS_CHANGED
    text: str


class SysStatusChanged(VehicleEvent):
    kind: Literal[EventKind.SYS_STATUS_CHANGED] = EventKind.SYS_STATUS_CHANGED
    battery_percent: float | None = None
    battery_voltage: float | None = None


class LocationChanged(VehicleEvent):
    kind: Literal[EventKind.LOCATION_CHANGED] = EventKind.LOCATION_CHANGED
    location: Location


class WaypointsDownloaded(VehicleEvent):
    kind: Literal[EventKind.WAYPOINTS_DOWNLOADED] = EventKind.WAYPOINTS_DOWNLOADED
    waypoints: list[MissionItem] = Field(default_factory=list)


class ParametersDownloaded(VehicleEvent):
    """Parameter table snapshot.

    ``parameters`` is indexed by parameter index; a slot is ``None`` when
    completion was signalled before that index arrived.
    """

    kind: Literal[EventKind.PARAMETERS_DOWNLOADED] = EventKind.PARAMETERS_DOWNLOADED
    parameters: list[ParamValue | None] = Field(default_factory=list)

    def as_dict(self) -> dict[str, float]:
        """Map parameter names to values, skipping missing slots."""
        return {param.param_id: param.param_value for param in self.parameters if param is not None}


class ExchangeFailureReason(StrEnum):
    RETRIES_EXHAUSTED = "retries_exhausted"
    SUPERSEDED = "superseded"


class ExchangeFailed(VehicleEvent):
    """A request ended without a matching reply."""

    kind: Literal[EventKind.EXCHANGE_FAILED] = EventKind.EXCHANGE_FAILED
    request_kind: str
    expected_kind: str
    attempts: int
    reason: ExchangeFailureReason = ExchangeFailureReason.RETRIES_EXHAUSTED
