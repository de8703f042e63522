"""Link configuration for pyflightlink."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from pyflightlink._constants import (
    DEFAULT_COMPONENT_ID,
    DEFAULT_HEARTBEAT_TIMEOUT,
    DEFAULT_LOCATION_THROTTLE,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_INTERVAL,
    DEFAULT_SYSTEM_ID,
)
from pyflightlink.exceptions import FlightLinkConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class LinkConfig:
    """Link configuration.

    Parameters
    ----------
    system_id : int
        Our MAVLink system id. Defaults to 253, a ground controller.
    component_id : int
        Our MAVLink component id.
    vehicle_system_id : int or None
        Only track heartbeats from this system. ``None`` tracks the first
        vehicle heard.
    listen_host : str
        Local address for the UDP endpoint.
    listen_port : int
        Local UDP port (14550 is the usual ground-station port).
    remote_host : str or None
        Vehicle address. When ``None`` the link replies to whichever
        address last sent it a datagram.
    remote_port : int or None
        Vehicle UDP port.
    retry_attempts : int
        Total sends per request/response exchange.
    retry_interval : float
        Seconds to wait for a reply before re-sending.
    location_throttle : float
        Minimum seconds between published location events.
    heartbeat_timeout : float
        Seconds without a heartbeat before the vehicle is considered lost.
    strict_parameter_completion : bool
        Complete parameter downloads only when every slot is filled,
        instead of when the last index arrives.
    mqtt_host : str or None
        Broker for publishing link events. ``None`` disables MQTT.
    mqtt_port : int
        Broker port.
    mqtt_topic_prefix : str
        Events go to ``<prefix>/<system_id>/<kind>``.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    system_id: int = DEFAULT_SYSTEM_ID
    component_id: int = DEFAULT_COMPONENT_ID
    vehicle_system_id: int | None = None
    listen_host: str = "0.0.0.0"
    listen_port: int = 14550
    remote_host: str | None = None
    remote_port: int | None = None
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    location_throttle: float = DEFAULT_LOCATION_THROTTLE
    heartbeat_timeout: float = DEFAULT_HEARTBEAT_TIMEOUT
    strict_parameter_completion: bool = False
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_topic_prefix: str = "flightlink"
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        for name in ("system_id", "component_id"):
            value = getattr(self, name)
            if not 1 <= value <= 255:
                raise FlightLinkConfigError(f"{name} must be between 1 and 255, got {value}")
        if self.vehicle_system_id is not None and not 1 <= self.vehicle_system_id <= 255:
            raise FlightLinkConfigError(f"vehicle_system_id must be between 1 and 255, got {self.vehicle_system_id}")
        if self.retry_attempts < 1:
            raise FlightLinkConfigError(f"retry_attempts must be at least 1, got {self.retry_attempts}")
        for name in ("retry_interval", "location_throttle", "heartbeat_timeout"):
            if getattr(self, name) <= 0:
                raise FlightLinkConfigError(f"{name} must be positive, got {getattr(self, name)}")
        if (self.remote_host is None) != (self.remote_port is None):
            raise FlightLinkConfigError("remote_host and remote_port must be set together")

    @property
    def remote_addr(self) -> tuple[str, int] | None:
        if self.remote_host is None or self.remote_port is None:
            return None
        return self.remote_host, self.remote_port

    @classmethod
    def from_env(cls, **overrides: Any) -> LinkConfig:
        """Create configuration from ``FLIGHTLINK_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        LinkConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "FLIGHTLINK_SYSTEM_ID": ("system_id", int),
            "FLIGHTLINK_COMPONENT_ID": ("component_id", int),
            "FLIGHTLINK_VEHICLE_SYSTEM_ID": ("vehicle_system_id", int),
            "FLIGHTLINK_LISTEN_HOST": ("listen_host", str),
            "FLIGHTLINK_LISTEN_PORT": ("listen_port", int),
            "FLIGHTLINK_REMOTE_HOST": ("remote_host", str),
            "FLIGHTLINK_REMOTE_PORT": ("remote_port", int),
            "FLIGHTLINK_RETRY_ATTEMPTS": ("retry_attempts", int),
            "FLIGHTLINK_RETRY_INTERVAL": ("retry_interval", float),
            "FLIGHTLINK_LOCATION_THROTTLE": ("location_throttle", float),
            "FLIGHTLINK_HEARTBEAT_TIMEOUT": ("heartbeat_timeout", float),
            "FLIGHTLINK_MQTT_HOST": ("mqtt_host", str),
            "FLIGHTLINK_MQTT_PORT": ("mqtt_port", int),
            "FLIGHTLINK_MQTT_TOPIC_PREFIX": ("mqtt_topic_prefix", str),
            "FLIGHTLINK_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, (field_name, convert) in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise FlightLinkConfigError(f"Invalid {env_key}={val!r}") from exc

        if "strict_parameter_completion" not in overrides:
            config_kwargs["strict_parameter_completion"] = _env_bool(
                env.get("FLIGHTLINK_STRICT_PARAMETER_COMPLETION"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
