"""Global configuration using Pydantic settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Literal, Optional

from pydantic import Field, PositiveInt, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MIB = 1024 * 1024

# Providers cap an inline request at 10 MiB of base64 text.
TRANSPORT_LIMIT_BYTES = 10 * _MIB


class Settings(BaseSettings):
    """Application wide settings loaded from environment variables."""

    base_dir: Path = Field(default_factory=lambda: Path("call-recordings"))
    database_path: Path = Field(default_factory=lambda: Path("callsense.db"))
    owner_id: str = "local"

    # Segmentation
    sample_rate: PositiveInt = 16_000
    target_segment_bytes: PositiveInt = int(7.5 * _MIB)
    max_segment_bytes: PositiveInt = int(7.5 * _MIB)
    min_segment_seconds: float = 30.0
    max_segment_seconds: float = 1200.0
    ffmpeg_binary: str = "ffmpeg"

    # Providers
    transcription_provider: str = "chat"
    analysis_provider: str = "gemini"
    chat_base_url: Optional[str] = None
    chat_api_key: Optional[str] = None
    transcription_model: str = "google/gemini-2.5-pro"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_api_key: Optional[str] = None
    analysis_model: str = "gemini-2.5-flash"

    # Resilience
    request_timeout: float = 120.0
    retry_attempts: PositiveInt = 3
    retry_base_delay: float = 0.7

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CALLSENSE_",
        env_file=".env",
        case_sensitive=False,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_segment_budget(self) -> "Settings":
        if self.max_segment_bytes * 4 / 3 > TRANSPORT_LIMIT_BYTES:
            raise ValueError(
                f"max_segment_bytes={self.max_segment_bytes} exceeds the transport limit "
                "once base64 encoded"
            )
        if self.target_segment_bytes > self.max_segment_bytes:
            raise ValueError("target_segment_bytes must not exceed max_segment_bytes")
        if not 0 < self.min_segment_seconds <= self.max_segment_seconds:
            raise ValueError("segment seconds must satisfy 0 < min <= max")
        return self

    @property
    def segments_dir(self) -> Path:
        path = self.base_dir / "segments"
        path.mkdir(parents=True, exist_ok=True)
        return path


_settings: Optional[Settings] = None

_ENV_PATH = Path(Settings.model_config.get("env_file") or ".env")


@dataclass
class EnvironmentSetting:
    """One setting as seen from the environment: variable name, value and default."""

    field: str
    env_name: str
    value: Any
    default: Any
    annotation: Any

    @property
    def is_secret(self) -> bool:
        return self.field.endswith("api_key")

    @property
    def display_value(self) -> Any:
        if self.is_secret and self.value:
            return "****"
        return self.value


class EnvironmentSettingError(RuntimeError):
    """Raised when environment-backed configuration updates fail."""


def env_name_for(field: str) -> str:
    prefix = Settings.model_config.get("env_prefix") or ""
    return f"{prefix}{field}".upper()


def _default_for(field_info) -> Any:
    if field_info.default_factory is not None:  # type: ignore[truthy-function]
        return field_info.default_factory()
    return field_info.get_default()


def _write_env_override(env_name: str, value: Optional[str]) -> None:
    """Replace (or drop, when ``value`` is None) ``env_name`` in the .env file."""

    existing: List[str] = _ENV_PATH.read_text().splitlines() if _ENV_PATH.exists() else []

    def _is_override(line: str) -> bool:
        stripped = line.strip()
        if stripped.startswith("#") or "=" not in stripped:
            return False
        return stripped.split("=", 1)[0].strip().upper() == env_name

    kept = [line for line in existing if not _is_override(line)]
    if value is not None:
        kept.append(f"{env_name}={value}")

    if any(line.strip() for line in kept):
        _ENV_PATH.write_text("\n".join(kept) + "\n")
    elif _ENV_PATH.exists():
        _ENV_PATH.unlink()


def list_environment_settings(settings: Optional[Settings] = None) -> Iterable[EnvironmentSetting]:
    """Return metadata for all environment-backed settings."""

    current = settings or get_settings()
    return [
        EnvironmentSetting(
            field=name,
            env_name=env_name_for(name),
            value=getattr(current, name),
            default=_default_for(info),
            annotation=info.annotation,
        )
        for name, info in Settings.model_fields.items()
    ]


def _reload_with(field: str, raw_value: Optional[str]) -> Settings:
    """Apply ``raw_value`` to the process environment, reload, persist on success."""

    if field not in Settings.model_fields:
        raise EnvironmentSettingError(f"Unknown setting: {field}")

    env_name = env_name_for(field)
    previous = os.environ.get(env_name)
    if raw_value is None:
        os.environ.pop(env_name, None)
    else:
        os.environ[env_name] = raw_value

    try:
        reloaded = Settings()
    except ValidationError as exc:
        if previous is None:
            os.environ.pop(env_name, None)
        else:
            os.environ[env_name] = previous
        raise EnvironmentSettingError(f"Invalid value for {field}: {exc}") from exc

    global _settings
    _settings = reloaded
    _write_env_override(env_name, raw_value)
    return reloaded


def update_environment_setting(field: str, raw_value: str) -> Settings:
    """Override ``field`` and persist it to the .env file."""

    return _reload_with(field, raw_value)


def clear_environment_setting(field: str) -> Settings:
    """Drop the override for ``field`` so its default applies again."""

    return _reload_with(field, None)


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = [
    "EnvironmentSetting",
    "EnvironmentSettingError",
    "Settings",
    "TRANSPORT_LIMIT_BYTES",
    "clear_environment_setting",
    "env_name_for",
    "get_settings",
    "list_environment_settings",
    "update_environment_setting",
]
