"""Periodic simulated telemetry samples."""

from __future__ import annotations

import asyncio
import json
import logging as py_logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from devicepulse.scheduling import PeriodicTask

logger = py_logging.getLogger(__name__)

TEMPERATURE_ALERT_THRESHOLD = 30.0
DEFAULT_TELEMETRY_INTERVAL = 0.2
DEFAULT_MAX_INFLIGHT = 4


@dataclass(frozen=True)
class TelemetrySample:
    temperature: float
    timestamp: str
    humidity: float

    def to_payload(self) -> dict[str, object]:
        return {
            "temperature": self.temperature,
            "timeStamp": self.timestamp,
            "humidity": self.humidity,
        }


@dataclass(frozen=True)
class TelemetryMessage:
    body: str
    properties: dict[str, str] = field(default_factory=dict)

    def get_data(self) -> str:
        return self.body


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sample_telemetry(
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> TelemetrySample:
    source = rng or random
    temperature = 20 + source.random() * 15
    humidity = 60 + source.random() * 20
    stamp = clock().isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return TelemetrySample(temperature=temperature, timestamp=stamp, humidity=humidity)


def build_message(sample: TelemetrySample) -> TelemetryMessage:
    alert = sample.temperature > TEMPERATURE_ALERT_THRESHOLD
    return TelemetryMessage(
        body=json.dumps(sample.to_payload()),
        properties={"temperatureAlert": "true" if alert else "false"},
    )


class TelemetryEmitter:
    """Sends one telemetry message per tick; failures are logged, never retried here."""

    def __init__(
        self,
        send: Callable[[TelemetryMessage], Awaitable[None]],
        *,
        interval: float = DEFAULT_TELEMETRY_INTERVAL,
        max_inflight: int = DEFAULT_MAX_INFLIGHT,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if max_inflight < 1:
            raise ValueError("max_inflight must be at least 1")
        self._send = send
        self.max_inflight = max_inflight
        self._rng = rng or random.Random()
        self._clock = clock
        self._timer = PeriodicTask("telemetry-tick", interval, self._dispatch)
        self._inflight: set[asyncio.Task[None]] = set()
        self.sent_count = 0
        self.failed_count = 0
        self.skipped_count = 0

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.cancel()
        for task in list(self._inflight):
            task.cancel()

    async def wait_closed(self) -> None:
        await self._timer.wait_closed()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _dispatch(self) -> None:
        if len(self._inflight) >= self.max_inflight:
            self.skipped_count += 1
            logger.warning(
                "telemetry tick skipped inflight=%s limit=%s",
                len(self._inflight),
                self.max_inflight,
            )
            return
        # a send may sit in retry backoff; the next tick must not wait for it
        task = asyncio.get_running_loop().create_task(self.tick())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def tick(self) -> None:
        message = build_message(sample_telemetry(self._rng, self._clock))
        logger.info("Sending message: %s", message.get_data())
        try:
            await self._send(message)
        except Exception as exc:
            self.failed_count += 1
            logger.error("send error: %s", exc)
            return
        self.sent_count += 1
        logger.info("message sent")
