"""Event sinks: where a link publishes its events.

The link only needs ``publish(event)``.  :class:`EventBus` fans events out
to in-process subscribers; :class:`~pyflightlink._mqtt.MqttEventPublisher`
forwards them to a broker.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from pyflightlink.state.events import EventKind, VehicleEvent

_logger = logging.getLogger(__name__)

Subscriber = Callable[[VehicleEvent], None]


class EventSink(Protocol):
    def publish(self, event: VehicleEvent) -> None:
        ...


class EventBus:
    """In-process observer list.

    A subscriber that raises is logged and skipped; it never prevents
    delivery to the others or disturbs the link that published.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[Subscriber, frozenset[EventKind] | None]] = []

    def subscribe(self, callback: Subscriber, kinds: Iterable[EventKind] | None = None) -> Callable[[], None]:
        """Register *callback*, optionally only for some event kinds.

        Returns a function that removes the subscription.
        """
        entry = (callback, frozenset(kinds) if kinds is not None else None)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            self._subscribers = [cand for cand in self._subscribers if cand is not entry]

        return _unsubscribe

    def publish(self, event: VehicleEvent) -> None:
        for callback, kinds in list(self._subscribers):
            if kinds is not None and event.kind not in kinds:
                continue
            try:
                callback(event)
            except Exception:
                _logger.exception("Event subscriber failed on %s", event.kind)


class FanoutSink:
    """Publish every event to several sinks in order."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = list(sinks)

    def publish(self, event: VehicleEvent) -> None:
        for sink in self._sinks:
            sink.publish(event)
