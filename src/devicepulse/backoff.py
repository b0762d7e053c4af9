"""Jittered exponential backoff with normal and throttled profiles."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from devicepulse.classify import ErrorKind, error_kind


class BackoffMode(str, Enum):
    NORMAL = "normal"
    THROTTLED = "throttled"


@dataclass(frozen=True)
class BackoffParameters:
    """Interval bounds in seconds.

    ``minimum_interval <= initial_interval`` is expected but not checked; the
    stock throttled profile deliberately starts below its minimum.
    """

    initial_interval: float
    minimum_interval: float
    maximum_interval: float

    def __post_init__(self) -> None:
        if min(self.initial_interval, self.minimum_interval, self.maximum_interval) < 0:
            raise ValueError("Backoff intervals must not be negative.")
        if self.minimum_interval > self.maximum_interval:
            raise ValueError(
                "Backoff minimum_interval "
                f"({self.minimum_interval}) exceeds maximum_interval ({self.maximum_interval})."
            )


DEFAULT_REGULAR = BackoffParameters(
    initial_interval=0.1, minimum_interval=0.1, maximum_interval=10.0
)
DEFAULT_THROTTLED = BackoffParameters(
    initial_interval=5.0, minimum_interval=10.0, maximum_interval=60.0
)


def backoff_mode_for(error: BaseException) -> BackoffMode:
    if error_kind(error) is ErrorKind.THROTTLING:
        return BackoffMode.THROTTLED
    return BackoffMode.NORMAL


class BackoffCalculator(Protocol):
    def compute_wait(self, attempt_number: int, mode: BackoffMode) -> float: ...


class ExponentialJitterBackoff:
    def __init__(
        self,
        regular: BackoffParameters = DEFAULT_REGULAR,
        throttled: BackoffParameters = DEFAULT_THROTTLED,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.regular = regular
        self.throttled = throttled
        self._rng = rng or random.Random()

    def parameters(self, mode: BackoffMode) -> BackoffParameters:
        return self.throttled if mode is BackoffMode.THROTTLED else self.regular

    def ceiling(self, attempt_number: int, mode: BackoffMode) -> float:
        params = self.parameters(mode)
        exponent = max(1, attempt_number) - 1
        # 2**1024 overflows a float; the cap is reached long before that
        if exponent >= 1023:
            return params.maximum_interval
        return min(params.maximum_interval, params.initial_interval * 2.0**exponent)

    def compute_wait(self, attempt_number: int, mode: BackoffMode) -> float:
        params = self.parameters(mode)
        upper = self.ceiling(attempt_number, mode)
        if upper <= params.minimum_interval:
            return params.minimum_interval
        wait = self._rng.uniform(params.minimum_interval, upper)
        return min(params.maximum_interval, max(params.minimum_interval, wait))
