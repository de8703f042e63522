"""Reliable request/response exchanges over a lossy link.

One request may be outstanding per link.  The request is sent once
immediately and re-sent from a single-shot timer until a reply of the
expected kind is offered or the attempt budget runs out.  Replies of any
other kind are left alone, which is how duplicate and unsolicited
replies are kept out of the download state machines.

Every exchange ends exactly one way: a matching reply, exhaustion, or
being superseded by a newer :meth:`ReliableExchange.send_with_retry`.
The last two are reported through the failure callbacks, except that a
request replacing one with the same failure callback is a restart by the
same owner and ends the old one silently.  One-off
commands use :meth:`ReliableExchange.enqueue` instead, which waits for the
slot to be free rather than taking it over.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from pyflightlink._constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_INTERVAL
from pyflightlink._redact import describe
from pyflightlink.exceptions import ExchangeFailedError, ExchangeSupersededError, RetryExhaustedError
from pyflightlink.models._base import MavMessage, MessageKind
from pyflightlink.timers import TimerHandle, TimerService

_logger = logging.getLogger(__name__)

FailureCallback = Callable[[MavMessage, ExchangeFailedError], None]


@dataclass
class PendingExchange:
    """The single outstanding request of a link."""

    expected_kind: MessageKind
    request: MavMessage
    retries_left: int
    retry_interval: float
    attempts: int
    on_failure: FailureCallback | None = None

    @property
    def sends(self) -> int:
        return self.attempts - self.retries_left + 1


class ReliableExchange:
    """Send-expect-retry primitive shared by every multi-step exchange.

    Parameters
    ----------
    send : callable
        Fire-and-forget sender for outbound messages.
    timers : TimerService
        Source of single-shot retry timers.
    attempts : int
        Total number of sends per exchange, including the first.
    retry_interval : float
        Seconds to wait for a reply before re-sending.
    on_failure : callable, optional
        Called for every exchange that is exhausted or superseded.
    """

    def __init__(
        self,
        *,
        send: Callable[[MavMessage], None],
        timers: TimerService,
        attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._send = send
        self._timers = timers
        self._attempts = attempts
        self._retry_interval = retry_interval
        self._on_failure = on_failure
        self._pending: PendingExchange | None = None
        self._timer: TimerHandle | None = None
        self._queue: deque[PendingExchange] = deque()
        self._drain_timer: TimerHandle | None = None

    @property
    def pending(self) -> PendingExchange | None:
        return self._pending

    @property
    def queued(self) -> int:
        """Requests waiting in :meth:`enqueue` order for the slot."""
        return len(self._queue)

    def send_with_retry(
        self,
        request: MavMessage,
        expected_kind: MessageKind,
        *,
        on_failure: FailureCallback | None = None,
    ) -> None:
        """Send *request* now and keep re-sending until *expected_kind* arrives.

        Supersedes any exchange still pending.  Unless it was sent with the
        same *on_failure*, its owner is told with an
        :class:`ExchangeSupersededError` once the new request is out.  Late
        replies to it are treated as unsolicited either way.
        """
        superseded = self._pending
        self._cancel_timer()
        self._begin(self._new_pending(request, expected_kind, on_failure))
        if superseded is None:
            return
        if superseded.on_failure is not None and superseded.on_failure == on_failure:
            _logger.debug("Restarting %s as %s", superseded.request.KIND.name, request.KIND.name)
            return
        _logger.info(
            "%s awaiting %s superseded by %s",
            superseded.request.KIND.name,
            superseded.expected_kind.name,
            request.KIND.name,
        )
        self._fail(
            superseded,
            ExchangeSupersededError(
                request_kind=superseded.request.KIND.name,
                expected_kind=superseded.expected_kind.name,
                attempts=superseded.sends,
            ),
        )

    def enqueue(
        self,
        request: MavMessage,
        expected_kind: MessageKind,
        *,
        on_failure: FailureCallback | None = None,
    ) -> None:
        """Like :meth:`send_with_retry`, but wait until no exchange is pending.

        Queued requests go out in order, each once the slot has stayed free
        for a loop turn, so a multi-step download keeps the slot between its
        own steps.
        """
        pending = self._new_pending(request, expected_kind, on_failure)
        if self._pending is None and not self._queue:
            self._begin(pending)
            return
        _logger.debug("Queueing %s behind pending exchange", describe(request))
        self._queue.append(pending)

    def offer(self, reply: MavMessage) -> MavMessage | None:
        """Complete the pending exchange if *reply* is of the expected kind.

        Returns the reply on a match, ``None`` otherwise.
        """
        pending = self._pending
        if pending is None or reply.KIND != pending.expected_kind:
            return None
        self._pending = None
        self._cancel_timer()
        self._schedule_drain()
        return reply

    def reset(self) -> None:
        """Forget pending and queued requests without reporting failure (link shutdown)."""
        self._pending = None
        self._queue.clear()
        self._cancel_timer()
        drain = self._drain_timer
        self._drain_timer = None
        if drain is not None:
            drain.cancel()

    def _new_pending(
        self,
        request: MavMessage,
        expected_kind: MessageKind,
        on_failure: FailureCallback | None,
    ) -> PendingExchange:
        return PendingExchange(
            expected_kind=expected_kind,
            request=request,
            retries_left=self._attempts,
            retry_interval=self._retry_interval,
            attempts=self._attempts,
            on_failure=on_failure,
        )

    def _begin(self, pending: PendingExchange) -> None:
        self._pending = pending
        self._arm(pending)
        self._send(pending.request)

    def _arm(self, pending: PendingExchange) -> None:
        self._timer = self._timers.after(pending.retry_interval, lambda: self._retry_expired(pending))

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()

    def _schedule_drain(self) -> None:
        if self._queue and self._drain_timer is None:
            self._drain_timer = self._timers.after(0, self._drain)

    def _drain(self) -> None:
        self._drain_timer = None
        if self._pending is not None or not self._queue:
            return
        pending = self._queue.popleft()
        _logger.debug("Slot free, sending queued %s", describe(pending.request))
        self._begin(pending)

    def _retry_expired(self, pending: PendingExchange) -> None:
        if self._pending is not pending:
            return
        self._timer = None
        pending.retries_left -= 1
        if pending.retries_left > 0:
            _logger.debug("Retry expired on %s, trying again", describe(pending.request))
            self._arm(pending)
            self._send(pending.request)
            return

        self._pending = None
        self._schedule_drain()
        _logger.error("No more retries, giving up: %s", describe(pending.request))
        self._fail(
            pending,
            RetryExhaustedError(
                request_kind=pending.request.KIND.name,
                expected_kind=pending.expected_kind.name,
                attempts=pending.attempts,
            ),
        )

    def _fail(self, pending: PendingExchange, error: ExchangeFailedError) -> None:
        if self._on_failure is not None:
            self._on_failure(pending.request, error)
        if pending.on_failure is not None:
            pending.on_failure(pending.request, error)
