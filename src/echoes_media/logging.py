from __future__ import annotations

import logging
import os
import socket
import sys
import time
from typing import Final, Literal

from echoes_media.json_utils import JSONValue, dump_json_str

LogFormat = Literal["json", "text"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Structured fields emitted by the job engine. Always picked up by both
# formatters when present on a record.
JOB_LOG_FIELDS: Final[tuple[str, ...]] = (
    "job_kind",
    "request_id",
    "attempt",
    "status",
    "http_status",
    "error_code",
    "latency_ms",
)


class _MissingValue:
    """Sentinel for absent or non-JSON LogRecord attributes."""

    __slots__ = ()


_MISSING = _MissingValue()


def _record_field(record: logging.LogRecord, field_name: str) -> JSONValue | _MissingValue:
    raw_value: object = record.__dict__.get(field_name, _MISSING)
    if isinstance(raw_value, (dict, list, str, int, float, bool)) or raw_value is None:
        return raw_value
    return _MISSING


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Carries timestamp (UTC), level, logger and message, the static fields
    given at setup (service, instance_id), any configured extra fields and
    the job fields in ``JOB_LOG_FIELDS``.
    """

    def __init__(
        self,
        *,
        static_fields: dict[str, str],
        extra_field_names: list[str],
    ) -> None:
        super().__init__()
        self._static = static_fields
        self._field_names = tuple(dict.fromkeys((*extra_field_names, *JOB_LOG_FIELDS)))

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, JSONValue] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self._static,
        }
        for field_name in self._field_names:
            value = _record_field(record, field_name)
            if field_name not in payload and not isinstance(value, _MissingValue):
                payload[field_name] = value
        if record.exc_info is not None:
            payload["exc_info"] = self.formatException(record.exc_info)
        return dump_json_str(payload, compact=False)


class TextFormatter(logging.Formatter):
    """``[timestamp] [LEVEL] [logger] [key=value ...] message``"""

    def __init__(self, *, extra_fields: list[str]) -> None:
        super().__init__()
        self._field_names = tuple(dict.fromkeys((*extra_fields, *JOB_LOG_FIELDS)))

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        parts = [f"[{timestamp}]", f"[{record.levelname}]", f"[{record.name}]"]
        for field_name in self._field_names:
            value = _record_field(record, field_name)
            if not isinstance(value, _MissingValue):
                parts.append(f"{field_name}={value}")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info is not None:
            line = line + "\n" + self.formatException(record.exc_info)
        return line


_LEVELS: Final[dict[LogLevel, int]] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(
    *,
    level: LogLevel,
    format_mode: LogFormat,
    service_name: str,
    instance_id: str | None,
    extra_fields: list[str] | None,
) -> logging.Logger:
    """Configure the root logger for the service.

    Clears existing root handlers and installs a single stdout handler with
    either the JSON or the text formatter.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_mode: "json" for deployed services, "text" for local runs
        service_name: Service name included in every JSON record
        instance_id: Instance ID (hostname-pid when None)
        extra_fields: Additional record attributes to emit

    Returns:
        Configured root logger
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_LEVELS[level])

    if instance_id is None:
        instance_id = f"{socket.gethostname().split('.')[0]}-{os.getpid()}"
    field_names = extra_fields if extra_fields is not None else []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    if format_mode == "json":
        handler.setFormatter(
            JsonFormatter(
                static_fields={"service": service_name, "instance_id": instance_id},
                extra_field_names=field_names,
            )
        )
    else:
        handler.setFormatter(TextFormatter(extra_fields=field_names))
    root.addHandler(handler)

    # httpx logs every request URL at INFO; keep it quiet.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = [
    "JOB_LOG_FIELDS",
    "JsonFormatter",
    "LogFormat",
    "LogLevel",
    "TextFormatter",
    "get_logger",
    "setup_logging",
]
