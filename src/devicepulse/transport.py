"""Collaborator interfaces consumed by the runtime, plus an in-process transport."""

from __future__ import annotations

import logging as py_logging
from collections import deque
from typing import Protocol

from devicepulse.classify import ErrorKind, TransportError
from devicepulse.telemetry import TelemetryMessage

logger = py_logging.getLogger(__name__)

STATE_DISCONNECTED = "disconnected"
STATE_CONNECTED = "connected"
# AMQP sessions report readiness as "authenticated", MQTT as "connected"
DEFAULT_CONNECTED_STATES = ("connected", "authenticated")


class Transport(Protocol):
    async def send(self, message: TelemetryMessage) -> None: ...

    def current_state(self) -> str: ...


class TransportStateQuery(Protocol):
    def current_state(self) -> str: ...


class MetricsSink(Protocol):
    def track_metric(self, name: str, value: float) -> None: ...


class LoggingMetricsSink:
    """Logs each metric and keeps the most recent ones for inspection."""

    def __init__(self, *, max_history: int = 100) -> None:
        self.tracked: deque[tuple[str, float]] = deque(maxlen=max_history)

    def track_metric(self, name: str, value: float) -> None:
        self.tracked.append((name, value))
        logger.info("metric name=%r value=%s", name, value)


class LoopbackTransport:
    """Transport that delivers messages into memory.

    Sends fail with ``NotConnectedError`` while ``state`` is not a connected
    tag, and errors queued with ``fail_next`` are raised by the following
    sends in order.
    """

    def __init__(
        self,
        *,
        state: str = STATE_CONNECTED,
        connected_states: tuple[str, ...] = DEFAULT_CONNECTED_STATES,
        max_history: int = 1000,
    ) -> None:
        self.state = state
        self.connected_states = connected_states
        self.sent: deque[TelemetryMessage] = deque(maxlen=max_history)
        self.send_calls = 0
        self._pending_errors: deque[BaseException] = deque()

    def current_state(self) -> str:
        return self.state

    def fail_next(self, *errors: BaseException) -> None:
        self._pending_errors.extend(errors)

    async def send(self, message: TelemetryMessage) -> None:
        self.send_calls += 1
        if self._pending_errors:
            raise self._pending_errors.popleft()
        if self.state not in self.connected_states:
            raise TransportError(
                f"Transport is not connected (state={self.state})",
                kind=ErrorKind.NOT_CONNECTED,
            )
        self.sent.append(message)
        logger.debug("loopback delivered properties=%s", message.properties)
