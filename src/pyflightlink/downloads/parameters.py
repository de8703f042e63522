"""Bulk parameter download.

One ``PARAM_REQUEST_LIST`` is retried until the first ``PARAM_VALUE``
arrives; the rest of the table then streams in unsolicited, each value
addressed by index into a declared total.  There is no per-item request.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from pyflightlink.exceptions import ExchangeFailedError
from pyflightlink.exchange import ReliableExchange
from pyflightlink.models._base import MavMessage, MessageKind
from pyflightlink.models.params import ParamRequestList, ParamValue

_logger = logging.getLogger(__name__)


class ParameterState(StrEnum):
    IDLE = "idle"
    AWAITING_FIRST = "awaiting_first"
    AWAITING_REST = "awaiting_rest"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ParameterTable:
    """Sparse table sized by the total the vehicle declares."""

    slots: list[ParamValue | None] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.slots)

    @property
    def received(self) -> int:
        return sum(1 for slot in self.slots if slot is not None)

    @property
    def is_full(self) -> bool:
        return bool(self.slots) and all(slot is not None for slot in self.slots)

    def resize(self, total: int) -> None:
        """Resize to *total* slots, discarding everything stored so far."""
        self.slots = [None] * total

    def store(self, value: ParamValue) -> bool:
        """Write *value* at its index. Returns ``False`` if out of range."""
        if value.param_index >= len(self.slots):
            return False
        self.slots[value.param_index] = value
        return True


class ParameterDownloader:
    """Collect the parameter burst that follows a list request.

    By default the download completes when the value with index
    ``total - 1`` arrives, even if earlier indices are still missing; this
    matches what deployed ground stations do.  With ``strict_completion``
    it completes only once every slot has been filled.
    """

    def __init__(
        self,
        *,
        exchange: ReliableExchange,
        on_complete: Callable[[list[ParamValue | None]], None],
        on_failure: Callable[[ExchangeFailedError], None] | None = None,
        strict_completion: bool = False,
    ) -> None:
        self._exchange = exchange
        self._on_complete = on_complete
        self._on_failure = on_failure
        self._strict_completion = strict_completion
        self.state = ParameterState.IDLE
        self.table = ParameterTable()

    def reset(self) -> None:
        self.state = ParameterState.IDLE
        self.table = ParameterTable()

    def start(self, target_system: int, target_component: int) -> None:
        self.table = ParameterTable()
        self.state = ParameterState.AWAITING_FIRST
        self._exchange.send_with_retry(
            ParamRequestList(target_system=target_system, target_component=target_component),
            MessageKind.PARAM_VALUE,
            on_failure=self._failed,
        )

    def handle_value(self, message: ParamValue) -> None:
        self._exchange.offer(message)
        if self.state in (ParameterState.IDLE, ParameterState.FAILED):
            return

        if message.param_count != self.table.total:
            if self.table.total:
                _logger.info(
                    "Parameter total changed from %d to %d, restarting table",
                    self.table.total,
                    message.param_count,
                )
            self.table.resize(message.param_count)
        if not self.table.store(message):
            _logger.debug("Ignoring parameter %s with index %d", message.param_id, message.param_index)
            return

        if self.state is ParameterState.COMPLETE:
            return
        self.state = ParameterState.AWAITING_REST

        if self._strict_completion:
            done = self.table.is_full
        else:
            done = message.param_index == self.table.total - 1
        if done:
            self.state = ParameterState.COMPLETE
            _logger.info("Downloaded %d of %d parameters", self.table.received, self.table.total)
            self._on_complete(list(self.table.slots))

    def _failed(self, _request: MavMessage, error: ExchangeFailedError) -> None:
        self.state = ParameterState.FAILED
        if self._on_failure is not None:
            self._on_failure(error)
