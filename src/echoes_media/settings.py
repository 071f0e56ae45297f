from __future__ import annotations

from typing import Final, TypedDict

from echoes_media import _test_hooks
from echoes_media.logging import LogFormat, LogLevel

_DEFAULT_QUEUE_BASE_URL: Final[str] = "https://queue.fal.run"
_DEFAULT_STORAGE_UPLOAD_URL: Final[str] = "https://fal.ai/api/storage/upload/file"
_DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 30.0


class QueueSettings(TypedDict):
    queue_base_url: str
    storage_upload_url: str
    http_timeout_seconds: float
    log_level: LogLevel
    log_format: LogFormat


class SettingsError(RuntimeError):
    pass


def _optional_env_str(key: str) -> str | None:
    value = _test_hooks.get_env(key)
    if value is None:
        return None
    trimmed = value.strip()
    if trimmed == "":
        return None
    return trimmed


def _parse_str(key: str, default: str) -> str:
    val = _optional_env_str(key)
    return val if val is not None else default


def _parse_float(key: str, default: float) -> float:
    val = _optional_env_str(key)
    if val is None:
        return default
    try:
        parsed = float(val)
    except ValueError as exc:
        raise SettingsError(f"Invalid number for {key}: {val!r}") from exc
    if parsed <= 0:
        raise SettingsError(f"{key} must be positive")
    return parsed


def _parse_url(key: str, default: str) -> str:
    val = _parse_str(key, default)
    if not val.startswith(("http://", "https://")):
        raise SettingsError(f"{key} must include http/https scheme")
    return val.rstrip("/")


def _parse_log_level(key: str, default: LogLevel) -> LogLevel:
    val = _optional_env_str(key)
    if val is None:
        return default
    levels: dict[str, LogLevel] = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }
    return levels.get(val.upper(), default)


def _parse_log_format(key: str, default: LogFormat) -> LogFormat:
    val = _optional_env_str(key)
    if val is None:
        return default
    lowered = val.lower()
    if lowered == "json":
        return "json"
    if lowered == "text":
        return "text"
    raise SettingsError(f"{key} must be 'json' or 'text'")


def load_settings() -> QueueSettings:
    """Load queue client settings from the environment.

    Provider API keys are deliberately absent: they arrive per request.
    """
    return {
        "queue_base_url": _parse_url("ECHOES_QUEUE_BASE_URL", _DEFAULT_QUEUE_BASE_URL),
        "storage_upload_url": _parse_url(
            "ECHOES_STORAGE_UPLOAD_URL", _DEFAULT_STORAGE_UPLOAD_URL
        ),
        "http_timeout_seconds": _parse_float(
            "ECHOES_HTTP_TIMEOUT_SECONDS", _DEFAULT_HTTP_TIMEOUT_SECONDS
        ),
        "log_level": _parse_log_level("ECHOES_LOG_LEVEL", "INFO"),
        "log_format": _parse_log_format("ECHOES_LOG_FORMAT", "json"),
    }


__all__ = ["QueueSettings", "SettingsError", "load_settings"]
