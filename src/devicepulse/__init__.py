"""Single-connection device telemetry client with managed retries and reconnects."""

from devicepulse.backoff import BackoffMode, BackoffParameters, ExponentialJitterBackoff
from devicepulse.classify import ErrorClassification, ErrorKind, TransportError, classify
from devicepulse.retry import (
    RetryAttempt,
    RetryDecision,
    RetryPolicy,
    RetryPolicyConfig,
    run_with_retry,
)
from devicepulse.runtime import DeviceClient
from devicepulse.supervisor import ConnectionSupervisor, ConnectivityEvent, ConnectivityState

__version__ = "0.1.0"

__all__ = [
    "BackoffMode",
    "BackoffParameters",
    "classify",
    "ConnectionSupervisor",
    "ConnectivityEvent",
    "ConnectivityState",
    "DeviceClient",
    "ErrorClassification",
    "ErrorKind",
    "ExponentialJitterBackoff",
    "RetryAttempt",
    "RetryDecision",
    "RetryPolicy",
    "RetryPolicyConfig",
    "run_with_retry",
    "TransportError",
]
