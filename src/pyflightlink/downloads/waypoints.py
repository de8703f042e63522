"""Sequential waypoint download.

``MISSION_REQUEST_LIST`` → ``MISSION_COUNT`` → ``MISSION_REQUEST(i)`` →
``MISSION_ITEM(i)`` for ``i`` in ``0..count-1``, one outstanding request at
a time.  Items for any index other than the one requested are duplicates
or stale replies and are discarded without touching the pending request,
which keeps retrying on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from pyflightlink.exceptions import ExchangeFailedError, SequenceViolationError
from pyflightlink.exchange import ReliableExchange
from pyflightlink.models._base import MavMessage, MessageKind
from pyflightlink.models.mission import MissionCount, MissionItem, MissionRequest, MissionRequestList

_logger = logging.getLogger(__name__)


class WaypointState(StrEnum):
    IDLE = "idle"
    AWAITING_COUNT = "awaiting_count"
    AWAITING_ITEM = "awaiting_item"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class WaypointSet:
    """Mission items received so far; ``len(items) == next_index`` always."""

    expected_count: int = 0
    next_index: int = 0
    items: list[MissionItem] = field(default_factory=list)


class WaypointDownloader:
    """Drive one waypoint download through a :class:`ReliableExchange`."""

    def __init__(
        self,
        *,
        exchange: ReliableExchange,
        on_complete: Callable[[list[MissionItem]], None],
        on_failure: Callable[[ExchangeFailedError], None] | None = None,
    ) -> None:
        self._exchange = exchange
        self._on_complete = on_complete
        self._on_failure = on_failure
        self._target_system = 0
        self._target_component = 0
        self.state = WaypointState.IDLE
        self.waypoints = WaypointSet()

    def reset(self) -> None:
        self.state = WaypointState.IDLE
        self.waypoints = WaypointSet()

    def start(self, target_system: int, target_component: int) -> None:
        """Reset the set and ask the vehicle for its mission size."""
        self._target_system = target_system
        self._target_component = target_component
        self.waypoints = WaypointSet()
        self.state = WaypointState.AWAITING_COUNT
        self._exchange.send_with_retry(
            MissionRequestList(target_system=target_system, target_component=target_component),
            MessageKind.MISSION_COUNT,
            on_failure=self._failed,
        )

    def handle_count(self, message: MissionCount) -> None:
        if self._exchange.offer(message) is None:
            _logger.debug("Ignoring unsolicited mission count %d", message.count)
            return

        _logger.info("Vehicle has %d waypoints, downloading...", message.count)
        self.waypoints = WaypointSet(expected_count=message.count)
        self._request_next()

    def handle_item(self, message: MissionItem) -> None:
        """Accept the item for the index being fetched.

        Raises :class:`SequenceViolationError` for any other index while a
        download is running.
        """
        if self.state is not WaypointState.AWAITING_ITEM:
            _logger.debug("Ignoring mission item %d outside a download", message.seq)
            return
        if message.seq != self.waypoints.next_index:
            raise SequenceViolationError(expected=self.waypoints.next_index, received=message.seq)
        if self._exchange.offer(message) is None:
            _logger.debug("Ignoring unsolicited mission item %d", message.seq)
            return

        self.waypoints.items.append(message)
        self.waypoints.next_index += 1
        self._request_next()

    def _request_next(self) -> None:
        waypoints = self.waypoints
        if waypoints.next_index < waypoints.expected_count:
            self.state = WaypointState.AWAITING_ITEM
            self._exchange.send_with_retry(
                MissionRequest(
                    target_system=self._target_system,
                    target_component=self._target_component,
                    seq=waypoints.next_index,
                ),
                MessageKind.MISSION_ITEM,
                on_failure=self._failed,
            )
            return

        self.state = WaypointState.COMPLETE
        _logger.info("Downloaded %d waypoints", len(waypoints.items))
        self._on_complete(list(waypoints.items))

    def _failed(self, _request: MavMessage, error: ExchangeFailedError) -> None:
        self.state = WaypointState.FAILED
        if self._on_failure is not None:
            self._on_failure(error)
