"""Connectivity belief state reconciled against the transport's observed state."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Callable, Iterable
from enum import Enum

from devicepulse.classify import ErrorKind, error_kind
from devicepulse.scheduling import PeriodicTask
from devicepulse.transport import DEFAULT_CONNECTED_STATES, TransportStateQuery

logger = py_logging.getLogger(__name__)


class ConnectivityState(str, Enum):
    IDLE = "idle"
    RETRYING = "retrying"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectivityEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


ConnectivityListener = Callable[[ConnectivityEvent], None]


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class ConnectionSupervisor:
    """Tracks whether the device is connected.

    The transport gives no callback when it recovers from a dropped
    connection, so a "not connected" retry decision opens an episode: the
    supervisor reports ``disconnected`` once and polls the transport state
    every ``poll_interval`` seconds until it reports a connected tag.
    Only ``NotConnectedError`` decisions drive the state machine.
    """

    def __init__(
        self,
        transport: TransportStateQuery,
        *,
        poll_interval: float,
        connected_states: Iterable[str] = DEFAULT_CONNECTED_STATES,
    ) -> None:
        self._transport = transport
        self.poll_interval = poll_interval
        self.connected_states = frozenset(connected_states)
        self._state = ConnectivityState.IDLE
        self._poll: PeriodicTask | None = None
        self._listeners: list[ConnectivityListener] = []

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def retrying(self) -> bool:
        return self._state is ConnectivityState.RETRYING

    @property
    def poll_active(self) -> bool:
        return self._poll is not None

    def subscribe(self, listener: ConnectivityListener) -> None:
        self._listeners.append(listener)

    def handle_retry_decision(self, retry: bool, error: BaseException) -> None:
        if error_kind(error) is not ErrorKind.NOT_CONNECTED:
            return
        if self.retrying:
            return
        logger.warning("Device client disconnected: %s", error)
        if not retry:
            if self._state is not ConnectivityState.DISCONNECTED:
                self._state = ConnectivityState.DISCONNECTED
                self._emit(ConnectivityEvent.DISCONNECTED)
            return

        if not _loop_running():
            # nothing could poll for recovery; record the outage and let a later
            # decision made on the loop open the episode
            logger.warning("no running event loop; reconnect poll not started")
            if self._state is not ConnectivityState.DISCONNECTED:
                self._state = ConnectivityState.DISCONNECTED
                self._emit(ConnectivityEvent.DISCONNECTED)
            return

        self._state = ConnectivityState.RETRYING
        self._emit(ConnectivityEvent.DISCONNECTED)
        if self._transport_connected():
            self._close_episode()
            return
        self._start_poll()

    async def reconcile(self) -> None:
        if not self.retrying:
            return
        if self._transport_connected():
            self._close_episode()

    def shutdown(self) -> None:
        self._cancel_poll()
        if self._state is not ConnectivityState.IDLE:
            logger.info("supervisor shutdown previous_state=%s", self._state.value)
        self._state = ConnectivityState.IDLE

    def _transport_connected(self) -> bool:
        try:
            current = self._transport.current_state()
        except Exception:
            logger.exception("transport state query failed")
            return False
        logger.debug("Current transport state: %s", current)
        return current in self.connected_states

    def _start_poll(self) -> None:
        if self._poll is not None:
            return
        poll = PeriodicTask("connection-check", self.poll_interval, self.reconcile)
        poll.start()
        self._poll = poll

    def _cancel_poll(self) -> None:
        poll, self._poll = self._poll, None
        if poll is not None:
            poll.cancel()

    def _close_episode(self) -> None:
        self._cancel_poll()
        self._state = ConnectivityState.CONNECTED
        logger.info("Device client connected")
        self._emit(ConnectivityEvent.CONNECTED)

    def _emit(self, event: ConnectivityEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("connectivity listener failed event=%s", event.value)
