from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest

from devicepulse import cli
from devicepulse.config import AppConfig
from devicepulse.errors import DevicePulseError, ExitCode
from devicepulse.transport import LoopbackTransport


@pytest.fixture(autouse=True)
def isolated_log_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log_path = tmp_path / "logs" / "devicepulse.log"
    monkeypatch.setattr(cli, "default_log_path", lambda: log_path)
    return log_path


def test_cli_help_includes_public_flags() -> None:
    help_text = cli.build_parser().format_help()

    for flag in ("--config", "--telemetry-interval", "--max-attempts", "--duration", "--log-level"):
        assert flag in help_text


def test_parse_args_normalizes_log_level() -> None:
    namespace = cli.parse_args(["--log-level", "warning"])

    assert namespace.log_level == "WARN"


@pytest.mark.parametrize(
    "argv",
    [
        ["--telemetry-interval", "0"],
        ["--telemetry-interval", "fast"],
        ["--max-attempts", "-1"],
        ["--log-level", "chatty"],
    ],
)
def test_invalid_arguments_return_invalid_args(argv: list[str]) -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(argv)

    assert code == int(ExitCode.INVALID_ARGS)


def test_overrides_apply_on_top_of_config(tmp_path: Path) -> None:
    namespace = cli.parse_args(
        [
            "--config",
            str(tmp_path / "missing.toml"),
            "--telemetry-interval",
            "2.5",
            "--max-attempts",
            "4",
        ]
    )

    config = cli.resolve_config(namespace)

    assert config.telemetry_interval_seconds == 2.5
    assert config.retry.maximum == 4


def test_build_client_uses_regular_maximum_as_poll_interval() -> None:
    client = cli.build_client(AppConfig(), LoopbackTransport())

    assert client.supervisor.poll_interval == 10.0
    assert client.policy.max_attempts is None


def test_invalid_config_file_reports_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("telemetry_interval_seconds = -1\n", encoding="utf-8")
    stream = io.StringIO()

    with redirect_stderr(stream):
        code = cli.main(["--config", str(path), "--duration", "0.01"])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Error: Invalid configuration" in stream.getvalue()


def test_transport_factory_error_is_reported() -> None:
    def failing_factory(config: AppConfig) -> LoopbackTransport:
        raise DevicePulseError(
            "Transport unavailable",
            code=ExitCode.RUNTIME_ERROR,
            hint="Check the endpoint.",
        )

    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["--duration", "0.01"], transport_factory=failing_factory)

    assert code == int(ExitCode.RUNTIME_ERROR)
    assert "Next step: Check the endpoint." in stream.getvalue()


def test_short_run_sends_telemetry_and_exits_cleanly() -> None:
    transport = LoopbackTransport()

    with redirect_stderr(io.StringIO()):
        code = cli.main(
            ["--duration", "0.2", "--telemetry-interval", "0.02"],
            transport_factory=lambda config: transport,
        )

    assert code == int(ExitCode.SUCCESS)
    assert len(transport.sent) >= 2


def test_log_file_defaults_to_package_log_path(isolated_log_path: Path) -> None:
    namespace = cli.parse_args([])

    assert cli.resolve_log_path(namespace) == isolated_log_path


def test_explicit_log_file_wins(tmp_path: Path) -> None:
    namespace = cli.parse_args(["--log-file", str(tmp_path / "run.log")])

    assert cli.resolve_log_path(namespace) == tmp_path / "run.log"


def test_run_writes_debug_log_to_default_path(isolated_log_path: Path, tmp_path: Path) -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(
            [
                "--config",
                str(tmp_path / "missing.toml"),
                "--telemetry-interval",
                "0.01",
                "--duration",
                "0.05",
            ]
        )

    assert code == int(ExitCode.SUCCESS)
    assert isolated_log_path.exists()
    assert "Starting device client" in isolated_log_path.read_text(encoding="utf-8")
