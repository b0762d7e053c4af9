"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .config import AppConfig, load_config
from .errors import DevicePulseError, ExitCode, user_facing_error
from .logging import configure_logging, default_log_path
from .runtime import DeviceClient
from .transport import LoopbackTransport, Transport

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _positive_float(flag: str) -> Callable[[str], float]:
    def parse(value: str) -> float:
        try:
            number = float(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"{flag} must be a number") from exc
        if number <= 0:
            raise argparse.ArgumentTypeError(f"{flag} must be greater than zero")
        return number

    return parse


def _max_attempts_type(value: str) -> int:
    try:
        attempts = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-attempts must be an integer") from exc
    if attempts < 0:
        raise argparse.ArgumentTypeError("--max-attempts must not be negative")
    return attempts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devicepulse",
        description="Send simulated device telemetry with managed reconnects.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument(
        "--telemetry-interval",
        type=_positive_float("--telemetry-interval"),
        default=None,
        help="Seconds between telemetry messages",
    )
    parser.add_argument("--max-attempts", type=_max_attempts_type, default=None)
    parser.add_argument(
        "--duration",
        type=_positive_float("--duration"),
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Debug log file (default: ~/.config/devicepulse/logs/devicepulse.log)",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_log_path(namespace: argparse.Namespace) -> Path:
    return namespace.log_file or default_log_path()


def resolve_config(namespace: argparse.Namespace) -> AppConfig:
    config = load_config(namespace.config)
    if namespace.telemetry_interval is not None:
        config.telemetry_interval_seconds = namespace.telemetry_interval
    if namespace.max_attempts is not None:
        config.retry.maximum = namespace.max_attempts
    return config


def build_client(config: AppConfig, transport: Transport) -> DeviceClient:
    return DeviceClient(
        transport,
        retry_config=config.retry_policy_config(),
        telemetry_interval=config.telemetry_interval_seconds,
        metrics_interval=config.metrics_interval_seconds,
        connected_states=config.connected_states,
        max_elapsed=config.max_elapsed_seconds,
        max_inflight_sends=config.max_inflight_sends,
    )


async def run_client(client: DeviceClient, *, duration: float | None = None) -> None:
    stop = asyncio.Event()
    if duration is not None:
        asyncio.get_running_loop().call_later(duration, stop.set)
    await client.run_forever(stop)


def main(
    argv: Sequence[str] | None = None,
    *,
    transport_factory: Callable[[AppConfig], Transport] | None = None,
) -> int:
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    logger = configure_logging(level=namespace.log_level, log_file=resolve_log_path(namespace))
    try:
        config = resolve_config(namespace)
        factory = transport_factory or (
            lambda cfg: LoopbackTransport(connected_states=cfg.connected_states)
        )
        client = build_client(config, factory(config))
        logger.debug("Starting device client duration=%s", namespace.duration)
        asyncio.run(run_client(client, duration=namespace.duration))
        return int(ExitCode.SUCCESS)
    except KeyboardInterrupt:
        logger.info("Interrupted; device client stopped")
        return int(ExitCode.SUCCESS)
    except DevicePulseError as exc:
        logger.error(
            "Handled DevicePulseError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = "Re-run with --log-level DEBUG"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
