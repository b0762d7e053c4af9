"""Periodic process metric export."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable

import psutil

from devicepulse.scheduling import PeriodicTask
from devicepulse.transport import MetricsSink

logger = py_logging.getLogger(__name__)

FREE_MEMORY_METRIC = "free memory"
DEFAULT_METRICS_INTERVAL = 1.0


def available_memory_bytes() -> float:
    return float(psutil.virtual_memory().available)


class MetricsExporter:
    def __init__(
        self,
        sink: MetricsSink,
        *,
        interval: float = DEFAULT_METRICS_INTERVAL,
        reader: Callable[[], float] = available_memory_bytes,
    ) -> None:
        self._sink = sink
        self._reader = reader
        self._timer = PeriodicTask("metrics-export", interval, self.tick)

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.cancel()

    async def wait_closed(self) -> None:
        await self._timer.wait_closed()

    async def tick(self) -> None:
        try:
            value = self._reader()
            self._sink.track_metric(FREE_MEMORY_METRIC, value)
        except Exception:
            logger.exception("metric export failed name=%r", FREE_MEMORY_METRIC)
