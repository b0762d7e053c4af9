"""XDG config loading for the device client."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from devicepulse.backoff import DEFAULT_REGULAR, DEFAULT_THROTTLED, BackoffParameters
from devicepulse.errors import DevicePulseError, ExitCode
from devicepulse.retry import RetryPolicyConfig
from devicepulse.telemetry import DEFAULT_MAX_INFLIGHT
from devicepulse.transport import DEFAULT_CONNECTED_STATES

DEFAULT_CONFIG_PATH = Path("~/.config/devicepulse/config.toml").expanduser()
DEFAULT_TELEMETRY_INTERVAL_SECONDS = 0.2
DEFAULT_METRICS_INTERVAL_SECONDS = 1.0


class BackoffSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    initial_interval_seconds: float = Field(ge=0)
    minimum_interval_seconds: float = Field(ge=0)
    maximum_interval_seconds: float = Field(gt=0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> BackoffSettings:
        if self.minimum_interval_seconds > self.maximum_interval_seconds:
            raise ValueError("minimum_interval_seconds must not exceed maximum_interval_seconds")
        return self

    @classmethod
    def from_parameters(cls, params: BackoffParameters) -> BackoffSettings:
        return cls(
            initial_interval_seconds=params.initial_interval,
            minimum_interval_seconds=params.minimum_interval,
            maximum_interval_seconds=params.maximum_interval,
        )

    def to_parameters(self) -> BackoffParameters:
        return BackoffParameters(
            initial_interval=self.initial_interval_seconds,
            minimum_interval=self.minimum_interval_seconds,
            maximum_interval=self.maximum_interval_seconds,
        )


class RetrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    maximum: int | None = Field(default=None, ge=0)
    regular: BackoffSettings = Field(
        default_factory=lambda: BackoffSettings.from_parameters(DEFAULT_REGULAR)
    )
    throttled: BackoffSettings = Field(
        default_factory=lambda: BackoffSettings.from_parameters(DEFAULT_THROTTLED)
    )


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    telemetry_interval_seconds: float = Field(default=DEFAULT_TELEMETRY_INTERVAL_SECONDS, gt=0)
    metrics_interval_seconds: float = Field(default=DEFAULT_METRICS_INTERVAL_SECONDS, gt=0)
    max_elapsed_seconds: float | None = Field(default=None, gt=0)
    max_inflight_sends: int = Field(default=DEFAULT_MAX_INFLIGHT, ge=1)
    connected_states: tuple[str, ...] = DEFAULT_CONNECTED_STATES
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("connected_states")
    @classmethod
    def _validate_connected_states(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(dict.fromkeys(item.strip() for item in value if item.strip()))
        if not cleaned:
            raise ValueError("connected_states must name at least one transport state")
        return cleaned

    def retry_policy_config(self) -> RetryPolicyConfig:
        return RetryPolicyConfig(
            maximum=self.retry.maximum,
            regular=self.retry.regular.to_parameters(),
            throttled=self.retry.throttled.to_parameters(),
        )


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location or '<root>'}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_config(raw: dict[str, object]) -> AppConfig:
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise DevicePulseError(
            f"Invalid configuration: {_validation_summary(exc)}",
            code=ExitCode.CONFIG_ERROR,
            hint="Fix the listed keys in the config file.",
        ) from exc


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return AppConfig()
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise DevicePulseError(
            f"Config file is not valid TOML: {resolved}",
            code=ExitCode.CONFIG_ERROR,
            hint=str(exc),
        ) from exc
    except OSError as exc:
        raise DevicePulseError(
            f"Config file could not be read: {resolved}",
            code=ExitCode.CONFIG_ERROR,
            hint=exc.strerror or "Check file permissions.",
        ) from exc
    return parse_config(raw)
