"""Threaded paho-mqtt publisher for link events."""

from __future__ import annotations

import logging
import secrets
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyflightlink.state.events import VehicleEvent


class MqttEventPublisher:
    """Forward link events to an MQTT broker as JSON.

    Each event goes to ``<topic_prefix>/<system_id>/<kind>``.  paho's
    network loop runs on its own thread; ``publish`` is safe to call from
    the event loop.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 1883,
        topic_prefix: str = "flightlink",
        keepalive: int = 60,
        client_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._topic_prefix = topic_prefix.rstrip("/")
        self._keepalive = keepalive
        self._client_id = client_id or f"flightlink-{secrets.token_hex(4)}"
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    def topic_for(self, event: VehicleEvent) -> str:
        return f"{self._topic_prefix}/{event.system_id}/{event.kind.value}"

    def start(self) -> None:
        """Connect and start the network loop."""
        self.stop()
        self._logger.debug(
            "MQTT publisher start requested host=%s port=%s client_id=%s",
            self._host,
            self._port,
            self._client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        client.connect(self._host, self._port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect and stop the network loop if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, event: VehicleEvent) -> None:
        client = self._client
        if client is None:
            self._logger.debug("MQTT publisher not running, dropping %s", event.kind)
            return
        client.publish(self.topic_for(event), event.model_dump_json(), qos=0)
