"""Device client runtime: wires the retry core, supervisor and periodic ticks."""

from __future__ import annotations

import asyncio
import logging as py_logging

from devicepulse.metrics import DEFAULT_METRICS_INTERVAL, MetricsExporter
from devicepulse.retry import RetryPolicy, RetryPolicyConfig, run_with_retry
from devicepulse.supervisor import ConnectionSupervisor, ConnectivityEvent
from devicepulse.telemetry import (
    DEFAULT_MAX_INFLIGHT,
    DEFAULT_TELEMETRY_INTERVAL,
    TelemetryEmitter,
    TelemetryMessage,
)
from devicepulse.transport import (
    DEFAULT_CONNECTED_STATES,
    LoggingMetricsSink,
    MetricsSink,
    Transport,
)

logger = py_logging.getLogger(__name__)


def log_connectivity(event: ConnectivityEvent) -> None:
    logger.info("connectivity event=%s", event.value)


class DeviceClient:
    def __init__(
        self,
        transport: Transport,
        *,
        retry_config: RetryPolicyConfig | None = None,
        policy: RetryPolicy | None = None,
        metrics_sink: MetricsSink | None = None,
        telemetry_interval: float = DEFAULT_TELEMETRY_INTERVAL,
        metrics_interval: float = DEFAULT_METRICS_INTERVAL,
        connected_states: tuple[str, ...] = DEFAULT_CONNECTED_STATES,
        max_elapsed: float | None = None,
        max_inflight_sends: int = DEFAULT_MAX_INFLIGHT,
    ) -> None:
        self.transport = transport
        self.policy = policy or RetryPolicy(retry_config)
        self.max_elapsed = max_elapsed
        # the regular profile's ceiling doubles as the reconnect poll period
        self.supervisor = ConnectionSupervisor(
            transport,
            poll_interval=self.policy.config.regular.maximum_interval,
            connected_states=connected_states,
        )
        self.policy.add_listener(self.supervisor.handle_retry_decision)
        self.supervisor.subscribe(log_connectivity)
        self.emitter = TelemetryEmitter(
            self.send_event,
            interval=telemetry_interval,
            max_inflight=max_inflight_sends,
        )
        self.exporter = MetricsExporter(
            metrics_sink or LoggingMetricsSink(),
            interval=metrics_interval,
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def send_event(self, message: TelemetryMessage) -> None:
        await run_with_retry(
            lambda: self.transport.send(message),
            policy=self.policy,
            max_elapsed=self.max_elapsed,
        )

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.emitter.start()
        self.exporter.start()
        logger.info("device client started")

    async def shutdown(self) -> None:
        if not self._started:
            self.supervisor.shutdown()
            return
        self._started = False
        self.emitter.stop()
        self.exporter.stop()
        self.supervisor.shutdown()
        await self.emitter.wait_closed()
        await self.exporter.wait_closed()
        logger.info("device client stopped")

    async def run_forever(self, stop: asyncio.Event) -> None:
        self.start()
        try:
            await stop.wait()
        finally:
            await self.shutdown()
