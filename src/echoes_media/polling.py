"""Polling stage: a bounded, fixed-delay state machine over the status endpoint.

Each attempt first awaits the descriptor's delay, then issues one status GET
and classifies the response:

- 404 inside the grace window: the queue has not indexed the request yet.
- any other non-2xx: the job is failed.
- ``COMPLETED``/``SUCCEEDED``: done, hand over to the result stage.
- ``FAILED``/``ERROR``: failed with whatever the status payload said.
- anything else, including an unreadable body: keep polling.

Transport errors count as an attempt and are retried. When attempts run out
the loop reports ``TIMED_OUT`` itself. Cancelling the awaiting task stops the
loop at the current sleep or request; nothing is scheduled afterwards.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Final, TypedDict

from echoes_media import _test_hooks
from echoes_media.errors import JobErrorCode, code_value
from echoes_media.http_client import HttpxAsyncClient, is_success, transport_error_type
from echoes_media.json_utils import JSONObject, JSONValue, dump_json_str, load_json_object
from echoes_media.logging import get_logger
from echoes_media.submission import JobHandle
from echoes_media.types import (
    JobStatus,
    OnUpdate,
    PollOutcome,
    StatusSnapshot,
    make_failure,
)

_logger = get_logger(__name__)

_STATUS_ALIASES: Final[dict[str, JobStatus]] = {
    "IN_QUEUE": "IN_QUEUE",
    "IN_PROGRESS": "IN_PROGRESS",
    "COMPLETED": "COMPLETED",
    "SUCCEEDED": "COMPLETED",
    "FAILED": "FAILED",
    "ERROR": "FAILED",
}


class StatusReading(TypedDict):
    status: JobStatus
    raw_status: str | None
    logs: list[str] | None
    error: str | None


def normalize_status(raw: str | None) -> JobStatus:
    if raw is None:
        return "UNKNOWN"
    return _STATUS_ALIASES.get(raw.strip().upper(), "UNKNOWN")


def parse_logs(value: JSONValue) -> list[str] | None:
    """Flatten ``[{"message": ...}]`` or ``[str]`` into a list of lines.

    Returns None when the payload has no log list at all, so the caller can
    keep its previous snapshot.
    """
    if not isinstance(value, list):
        return None
    lines: list[str] = []
    for entry in value:
        if isinstance(entry, str):
            lines.append(entry)
        elif isinstance(entry, dict):
            message = entry.get("message")
            lines.append(message if isinstance(message, str) else dump_json_str(entry))
        elif entry is not None:
            lines.append(dump_json_str(entry))
    return lines


def _error_text(body: JSONObject) -> str | None:
    for key in ("error", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value.strip() != "":
            return value
        if isinstance(value, (dict, list)):
            return dump_json_str(value)
    return None


def failed_message(error: str | None) -> str:
    return f"Job failed. Reason: {error}" if error is not None else "Job failed."


def read_status(body: JSONObject | None) -> StatusReading:
    """Interpret a status payload; ``None`` means the body was not a JSON object."""
    if body is None:
        return {"status": "UNKNOWN", "raw_status": None, "logs": None, "error": None}
    raw = body.get("status")
    raw_status = raw if isinstance(raw, str) else None
    return {
        "status": normalize_status(raw_status),
        "raw_status": raw_status,
        "logs": parse_logs(body.get("logs")),
        "error": _error_text(body),
    }


def _notify(on_update: OnUpdate | None, snapshot: StatusSnapshot, kind: str) -> None:
    if on_update is None:
        return
    try:
        on_update(snapshot)
    except Exception:
        _logger.exception(
            "job_observer_error",
            extra={
                "job_kind": kind,
                "request_id": snapshot["request_id"],
                "attempt": snapshot["attempt"],
            },
        )


async def poll_until_terminal(
    client: HttpxAsyncClient,
    handle: JobHandle,
    base_url: str,
    api_key: str,
    *,
    on_update: OnUpdate | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> PollOutcome:
    descriptor = handle.descriptor
    kind = descriptor.kind
    request_id = handle.request_id
    url = descriptor.status_url(base_url, request_id)
    headers = descriptor.auth_header(api_key)
    do_sleep = sleep if sleep is not None else _test_hooks.sleep
    logs: list[str] = []

    for attempt in range(1, descriptor.max_attempts + 1):
        await do_sleep(descriptor.poll_delay_seconds)
        fields = {"job_kind": kind, "request_id": request_id, "attempt": attempt}
        try:
            resp = await client.get(url, headers=headers)
        except transport_error_type() as exc:
            _logger.info(
                "job_poll_transient",
                extra={
                    **fields,
                    "error_code": code_value(JobErrorCode.TRANSIENT),
                    "error_type": type(exc).__name__,
                },
            )
            continue

        status_code = int(resp.status_code)
        if status_code == 404 and attempt <= descriptor.not_found_grace_attempts:
            _logger.debug(
                "job_poll_not_indexed",
                extra={
                    **fields,
                    "http_status": status_code,
                    "error_code": code_value(JobErrorCode.TRANSIENT),
                },
            )
            continue
        if not is_success(resp):
            _logger.warning("job_poll_rejected", extra={**fields, "http_status": status_code})
            return make_failure(
                kind=kind,
                request_id=request_id,
                code=code_value(JobErrorCode.JOB_FAILED),
                message=f"Polling status failed with status: {status_code}",
                logs=logs,
                http_status=status_code,
                detail=resp.text,
            )

        reading = read_status(load_json_object(resp.text))
        if reading["logs"] is not None:
            logs = reading["logs"]
        snapshot: StatusSnapshot = {
            "request_id": request_id,
            "attempt": attempt,
            "status": reading["status"],
            "raw_status": reading["raw_status"],
            "logs": list(logs),
            "error": reading["error"],
        }
        _logger.debug("job_poll", extra={**fields, "status": reading["status"]})
        _notify(on_update, snapshot, kind)

        if reading["status"] == "COMPLETED":
            _logger.info("job_completed", extra={**fields, "status": "COMPLETED"})
            return {"state": "completed", "logs": list(logs), "attempts": attempt}
        if reading["status"] == "FAILED":
            _logger.info("job_failed", extra={**fields, "status": "FAILED"})
            return make_failure(
                kind=kind,
                request_id=request_id,
                code=code_value(JobErrorCode.JOB_FAILED),
                message=failed_message(reading["error"]),
                logs=logs,
                detail=reading["error"],
            )

    _logger.warning(
        "job_timed_out",
        extra={
            "job_kind": kind,
            "request_id": request_id,
            "attempt": descriptor.max_attempts,
            "error_code": code_value(JobErrorCode.TIMED_OUT),
        },
    )
    return make_failure(
        kind=kind,
        request_id=request_id,
        code=code_value(JobErrorCode.TIMED_OUT),
        message=f"Job polling timed out after {descriptor.max_attempts} attempts.",
        logs=logs,
        state="timed_out",
    )


__all__ = [
    "StatusReading",
    "failed_message",
    "normalize_status",
    "parse_logs",
    "poll_until_terminal",
    "read_status",
]
