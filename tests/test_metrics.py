from __future__ import annotations

import asyncio

import pytest

from devicepulse.metrics import FREE_MEMORY_METRIC, MetricsExporter, available_memory_bytes
from devicepulse.transport import LoggingMetricsSink


def test_available_memory_is_positive() -> None:
    assert available_memory_bytes() > 0


@pytest.mark.asyncio
async def test_tick_tracks_free_memory_metric() -> None:
    sink = LoggingMetricsSink()
    exporter = MetricsExporter(sink, reader=lambda: 1024.0)

    await exporter.tick()

    assert sink.tracked == [(FREE_MEMORY_METRIC, 1024.0)]


@pytest.mark.asyncio
async def test_reader_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingMetricsSink()

    def broken_reader() -> float:
        raise OSError("proc unavailable")

    exporter = MetricsExporter(sink, reader=broken_reader)
    with caplog.at_level("ERROR", logger="devicepulse.metrics"):
        await exporter.tick()

    assert sink.tracked == []
    assert "metric export failed" in caplog.text


@pytest.mark.asyncio
async def test_exporter_runs_periodically_until_stopped() -> None:
    sink = LoggingMetricsSink()
    exporter = MetricsExporter(sink, interval=0.01, reader=lambda: 1.0)

    exporter.start()
    await asyncio.sleep(0.05)
    exporter.stop()
    await exporter.wait_closed()
    count = len(sink.tracked)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(sink.tracked) == count
