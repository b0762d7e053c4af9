"""Error taxonomy and terminal/transient classification."""

from __future__ import annotations

import errno
import socket
from enum import Enum


class ErrorKind(str, Enum):
    # terminal: the request itself is wrong and will fail the same way again
    VALIDATION = "ValidationError"
    ARGUMENT = "ArgumentError"
    ARGUMENT_NULL = "ArgumentNullError"
    ARGUMENT_OUT_OF_RANGE = "ArgumentOutOfRangeError"
    DEVICE_NOT_FOUND = "DeviceNotFoundError"
    FORMAT = "FormatError"
    UNAUTHORIZED = "UnauthorizedError"
    NOT_IMPLEMENTED = "NotImplementedError"
    MESSAGE_TOO_LARGE = "MessageTooLargeError"
    HUB_NOT_FOUND = "IotHubNotFoundError"
    JOB_NOT_FOUND = "JobNotFoundError"
    TOO_MANY_DEVICES = "TooManyDevicesError"
    DEVICE_ALREADY_EXISTS = "DeviceAlreadyExistsError"
    MESSAGE_LOCK_LOST = "DeviceMessageLockLostError"
    INVALID_ETAG = "InvalidEtagError"
    INVALID_OPERATION = "InvalidOperationError"
    PRECONDITION_FAILED = "PreconditionFailedError"
    BAD_DEVICE_RESPONSE = "BadDeviceResponseError"

    # transient: connectivity, overload and quota conditions
    NOT_CONNECTED = "NotConnectedError"
    INTERNAL_SERVER = "InternalServerError"
    SERVICE_UNAVAILABLE = "ServiceUnavailableError"
    TIMEOUT = "TimeoutError"
    THROTTLING = "ThrottlingError"
    DEVICE_TIMEOUT = "DeviceTimeoutError"
    GATEWAY_TIMEOUT = "GatewayTimeoutError"
    QUEUE_DEPTH_EXCEEDED = "DeviceMaximumQueueDepthExceededError"
    HUB_SUSPENDED = "IoTHubSuspendedError"
    QUOTA_EXCEEDED = "IotHubQuotaExceededError"
    CLIENT_DISCONNECTED = "MqttClientDisconnectedError"
    STORAGE = "StorageError"
    BLOB_SAS = "BlobSasError"
    BLOB_UPLOAD_NOTIFICATION = "BlobUploadNotificationError"
    INVALID_OBJECT = "InvalidObjectError"
    INVALID_MODULE = "InvalidModuleError"

    @classmethod
    def lookup(cls, name: str) -> ErrorKind | None:
        try:
            return cls(name)
        except ValueError:
            return None


class ErrorClassification(str, Enum):
    TERMINAL = "terminal"
    TRANSIENT = "transient"


_TERMINAL = ErrorClassification.TERMINAL
_TRANSIENT = ErrorClassification.TRANSIENT

KIND_CLASSIFICATION: dict[ErrorKind, ErrorClassification] = {
    ErrorKind.VALIDATION: _TERMINAL,
    ErrorKind.ARGUMENT: _TERMINAL,
    ErrorKind.ARGUMENT_NULL: _TERMINAL,
    ErrorKind.ARGUMENT_OUT_OF_RANGE: _TERMINAL,
    ErrorKind.DEVICE_NOT_FOUND: _TERMINAL,
    ErrorKind.FORMAT: _TERMINAL,
    ErrorKind.UNAUTHORIZED: _TERMINAL,
    ErrorKind.NOT_IMPLEMENTED: _TERMINAL,
    ErrorKind.MESSAGE_TOO_LARGE: _TERMINAL,
    ErrorKind.HUB_NOT_FOUND: _TERMINAL,
    ErrorKind.JOB_NOT_FOUND: _TERMINAL,
    ErrorKind.TOO_MANY_DEVICES: _TERMINAL,
    ErrorKind.DEVICE_ALREADY_EXISTS: _TERMINAL,
    ErrorKind.MESSAGE_LOCK_LOST: _TERMINAL,
    ErrorKind.INVALID_ETAG: _TERMINAL,
    ErrorKind.INVALID_OPERATION: _TERMINAL,
    ErrorKind.PRECONDITION_FAILED: _TERMINAL,
    ErrorKind.BAD_DEVICE_RESPONSE: _TERMINAL,
    ErrorKind.NOT_CONNECTED: _TRANSIENT,
    ErrorKind.INTERNAL_SERVER: _TRANSIENT,
    ErrorKind.SERVICE_UNAVAILABLE: _TRANSIENT,
    ErrorKind.TIMEOUT: _TRANSIENT,
    ErrorKind.THROTTLING: _TRANSIENT,
    ErrorKind.DEVICE_TIMEOUT: _TRANSIENT,
    ErrorKind.GATEWAY_TIMEOUT: _TRANSIENT,
    ErrorKind.QUEUE_DEPTH_EXCEEDED: _TRANSIENT,
    ErrorKind.HUB_SUSPENDED: _TRANSIENT,
    ErrorKind.QUOTA_EXCEEDED: _TRANSIENT,
    ErrorKind.CLIENT_DISCONNECTED: _TRANSIENT,
    # storage failures are ambiguous without a status code
    ErrorKind.STORAGE: _TRANSIENT,
    ErrorKind.BLOB_SAS: _TRANSIENT,
    ErrorKind.BLOB_UPLOAD_NOTIFICATION: _TRANSIENT,
    ErrorKind.INVALID_OBJECT: _TRANSIENT,
    ErrorKind.INVALID_MODULE: _TRANSIENT,
}

TRANSIENT_CODES = frozenset(
    {
        "ECONNREFUSED",
        "ECONNRESET",
        "ETIMEDOUT",
        "ESOCKETTIMEDOUT",
        "ENETUNREACH",
        "EAI_AGAIN",
        "EADDRNOTAVAIL",
        "ENOTFOUND",
        "EPIPE",
    }
)


class TransportError(Exception):
    """Failure reported by the transport, tagged with a kind and/or a low-level code."""

    def __init__(
        self,
        message: str = "",
        *,
        kind: ErrorKind | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message or (kind.value if kind else code) or "transport error")
        self.kind = kind
        self.code = code

    def __repr__(self) -> str:
        kind = self.kind.value if self.kind is not None else None
        return f"TransportError({str(self)!r}, kind={kind!r}, code={self.code!r})"


def error_kind(error: BaseException) -> ErrorKind | None:
    """Return the named kind carried by ``error``, if any.

    ``TransportError`` carries it explicitly; any other exception is matched by
    its class name, so a library's own ``ThrottlingError`` is recognized too.
    """
    if isinstance(error, TransportError) and error.kind is not None:
        return error.kind
    return ErrorKind.lookup(type(error).__name__)


def error_code(error: BaseException) -> str | None:
    """Return the symbolic low-level code carried by ``error``, if any."""
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code
    if isinstance(error, socket.gaierror) and error.errno == socket.EAI_AGAIN:
        return "EAI_AGAIN"
    if isinstance(error, OSError) and isinstance(error.errno, int):
        return errno.errorcode.get(error.errno)
    return None


def classify(error: BaseException) -> ErrorClassification:
    kind = error_kind(error)
    if kind is not None:
        return KIND_CLASSIFICATION[kind]
    code = error_code(error)
    if code is not None:
        return _TRANSIENT if code in TRANSIENT_CODES else _TERMINAL
    # Unclassified errors are assumed to be unexpected transient conditions.
    return _TRANSIENT


def is_transient(error: BaseException) -> bool:
    return classify(error) is ErrorClassification.TRANSIENT
