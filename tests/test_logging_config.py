from __future__ import annotations

import io
import logging as py_logging
from pathlib import Path

import devicepulse.logging as dp_logging


def test_default_log_path_is_expanded() -> None:
    path = dp_logging.default_log_path()

    assert path.is_absolute()
    assert path.name == "devicepulse.log"


def test_warning_alias_maps_to_warning_level() -> None:
    logger = dp_logging.configure_logging("warn")

    assert logger.level == dp_logging.LOG_LEVELS["WARNING"]


def test_unknown_log_level_falls_back_to_info() -> None:
    logger = dp_logging.configure_logging("not-a-level")

    assert logger.level == py_logging.INFO


def test_configure_logging_resets_existing_handlers() -> None:
    logger = dp_logging.configure_logging("INFO")
    assert len(logger.handlers) == 1

    logger = dp_logging.configure_logging("INFO")

    assert len(logger.handlers) == 1


def test_module_loggers_write_to_configured_stream() -> None:
    stream = io.StringIO()
    dp_logging.configure_logging("DEBUG", stream)

    py_logging.getLogger("devicepulse.supervisor").debug("Current transport state: %s", "connected")

    assert "devicepulse.supervisor" in stream.getvalue()
    assert "Current transport state: connected" in stream.getvalue()


def test_file_handler_receives_debug_while_console_stays_at_level(tmp_path: Path) -> None:
    stream = io.StringIO()
    log_file = tmp_path / "logs" / "devicepulse.log"

    logger = dp_logging.configure_logging("ERROR", stream, log_file=log_file)
    py_logging.getLogger("devicepulse.retry").debug("retry-decision detail")
    for handler in logger.handlers:
        handler.flush()

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, py_logging.FileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].level == py_logging.DEBUG
    assert "retry-decision detail" in log_file.read_text(encoding="utf-8")
    assert stream.getvalue() == ""


def test_configure_logging_ignores_file_handler_oserror(monkeypatch, tmp_path: Path) -> None:
    def raise_os_error(*args: object, **kwargs: object) -> py_logging.Handler:
        raise OSError("disk full")

    monkeypatch.setattr(dp_logging.py_logging, "FileHandler", raise_os_error)

    logger = dp_logging.configure_logging("INFO", log_file=tmp_path / "nope" / "devicepulse.log")

    assert len(logger.handlers) == 1
    assert type(logger.handlers[0]) is py_logging.StreamHandler
    assert logger.level == py_logging.INFO
