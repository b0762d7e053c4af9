"""Retry policy and managed retry sequences for transport operations."""

from __future__ import annotations

import asyncio
import logging as py_logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from devicepulse.backoff import (
    DEFAULT_REGULAR,
    DEFAULT_THROTTLED,
    BackoffCalculator,
    BackoffMode,
    BackoffParameters,
    ExponentialJitterBackoff,
    backoff_mode_for,
)
from devicepulse.classify import ErrorClassification, classify

T = TypeVar("T")

logger = py_logging.getLogger(__name__)

RetryListener = Callable[[bool, BaseException], None]
Classifier = Callable[[BaseException], ErrorClassification]


@dataclass(frozen=True)
class RetryPolicyConfig:
    maximum: int | None = None
    regular: BackoffParameters = DEFAULT_REGULAR
    throttled: BackoffParameters = DEFAULT_THROTTLED


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    wait: float = 0.0
    mode: BackoffMode = BackoffMode.NORMAL


@dataclass(frozen=True)
class RetryAttempt:
    attempt_number: int
    error: BaseException
    decision: RetryDecision


@dataclass
class AttemptOutcome(Generic[T]):
    """Holds the operation result once an attempt sequence succeeds."""

    result: T | None = None
    succeeded: bool = False
    attempts: list[RetryAttempt] = field(default_factory=list)


class RetryPolicy:
    """Decides whether and when a failed operation is attempted again.

    Composes an error classifier with a backoff calculator. Every decision is
    published to the registered listeners as ``(retry, error)``.
    """

    def __init__(
        self,
        config: RetryPolicyConfig | None = None,
        *,
        calculator: BackoffCalculator | None = None,
        classifier: Classifier = classify,
    ) -> None:
        self.config = config or RetryPolicyConfig()
        self._calculator = calculator or ExponentialJitterBackoff(
            self.config.regular, self.config.throttled
        )
        self._classifier = classifier
        self._listeners: list[RetryListener] = []

    @property
    def max_attempts(self) -> int | None:
        return self.config.maximum

    def add_listener(self, listener: RetryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RetryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def should_retry(
        self,
        error: BaseException,
        attempt_number: int,
        *,
        max_attempts: int | None = None,
    ) -> RetryDecision:
        cap = max_attempts if max_attempts is not None else self.config.maximum
        if self._classifier(error) is ErrorClassification.TERMINAL:
            decision = RetryDecision(retry=False)
            logger.warning(
                "retry-decision unrecoverable error=%r attempt=%s", error, attempt_number
            )
        else:
            mode = backoff_mode_for(error)
            decision = RetryDecision(
                retry=cap is None or attempt_number <= cap,
                wait=self._calculator.compute_wait(attempt_number, mode),
                mode=mode,
            )
            logger.info(
                "retry-decision recoverable error=%r attempt=%s retry=%s wait=%.3f mode=%s",
                error,
                attempt_number,
                decision.retry,
                decision.wait,
                mode.value,
            )
        self._notify(decision.retry, error)
        return decision

    def _notify(self, retry: bool, error: BaseException) -> None:
        for listener in list(self._listeners):
            try:
                listener(retry, error)
            except Exception:
                logger.exception("retry-listener failed listener=%r", listener)

    async def attempts(
        self,
        operation: Callable[[], Awaitable[T]],
        outcome: AttemptOutcome[T] | None = None,
        *,
        max_attempts: int | None = None,
        max_elapsed: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> AsyncIterator[RetryAttempt]:
        """Yield one ``RetryAttempt`` per failure of ``operation``.

        The sequence ends after a success (``outcome`` is filled in) or by
        re-raising the last error once the policy refuses another attempt, the
        attempt cap is exceeded or the next wait would overrun ``max_elapsed``.
        """
        if outcome is None:
            outcome = AttemptOutcome()
        started = clock()
        attempt_number = 0
        while True:
            try:
                outcome.result = await operation()
            except Exception as exc:
                attempt_number += 1
                decision = self.should_retry(exc, attempt_number, max_attempts=max_attempts)
                attempt = RetryAttempt(attempt_number=attempt_number, error=exc, decision=decision)
                outcome.attempts.append(attempt)
                yield attempt
                if not decision.retry:
                    raise exc
                if max_elapsed is not None and clock() - started + decision.wait > max_elapsed:
                    logger.warning(
                        "retry-budget exhausted attempt=%s elapsed_limit=%.3f",
                        attempt_number,
                        max_elapsed,
                    )
                    raise exc
                await sleep(decision.wait)
            else:
                outcome.succeeded = True
                return


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    max_attempts: int | None = None,
    max_elapsed: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    outcome: AttemptOutcome[T] = AttemptOutcome()
    async for _ in policy.attempts(
        operation,
        outcome,
        max_attempts=max_attempts,
        max_elapsed=max_elapsed,
        sleep=sleep,
    ):
        pass
    if not outcome.succeeded:
        raise RuntimeError("Retry sequence ended without executing operation.")
    return outcome.result  # type: ignore[return-value]
