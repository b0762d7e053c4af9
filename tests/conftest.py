from __future__ import annotations

import logging as py_logging
import random
from collections.abc import Iterator
from pathlib import Path

import pytest

from devicepulse.backoff import BackoffParameters


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def regular() -> BackoffParameters:
    return BackoffParameters(initial_interval=0.1, minimum_interval=0.1, maximum_interval=10.0)


@pytest.fixture
def throttled() -> BackoffParameters:
    return BackoffParameters(initial_interval=5.0, minimum_interval=10.0, maximum_interval=60.0)


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo configure_logging so caplog sees package records."""
    yield
    logger = py_logging.getLogger("devicepulse")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True
