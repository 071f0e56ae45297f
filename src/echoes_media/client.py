"""Queued job client: submit, poll until terminal, fetch the artifact."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from echoes_media.catalog import get_descriptor
from echoes_media.descriptors import JobDescriptor
from echoes_media.errors import AppError, ErrorCode, JobErrorCode, code_value
from echoes_media.http_client import (
    HttpxAsyncClient,
    build_async_client,
    is_success,
    transport_error_type,
)
from echoes_media.json_utils import JSONObject, load_json_object
from echoes_media.logging import get_logger
from echoes_media.polling import failed_message, poll_until_terminal, read_status
from echoes_media.result import fetch_failure_detail, fetch_result
from echoes_media.settings import QueueSettings
from echoes_media.storage import upload_data_uri
from echoes_media.submission import JobHandle, submit_job
from echoes_media.types import JobFailure, JobOutcome, OnUpdate, StatusCheck, make_failure
from echoes_media.validators import require_api_key

_logger = get_logger(__name__)


class QueuedJobClient:
    """Drives queue-style jobs against the configured queue base URL.

    One instance may serve many concurrent jobs; the only shared state is the
    underlying HTTP connection pool. API keys are passed per call and are
    never stored on the instance.
    """

    __slots__ = ("_client", "_owns_client", "_settings", "_sleep")

    def __init__(
        self,
        settings: QueueSettings,
        client: HttpxAsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client: HttpxAsyncClient = (
            build_async_client(settings["http_timeout_seconds"]) if client is None else client
        )
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def base_url(self) -> str:
        return self._settings["queue_base_url"]

    async def _prepare_payload(
        self, descriptor: JobDescriptor, api_key: str, job_input: JSONObject
    ) -> JSONObject:
        payload = descriptor.build_payload(job_input)
        for field in descriptor.upload_media_fields:
            value = payload.get(field)
            if isinstance(value, str):
                payload[field] = await upload_data_uri(
                    self._client, self._settings["storage_upload_url"], value, api_key
                )
        return payload

    async def submit(
        self,
        kind: str | JobDescriptor,
        api_key: str,
        job_input: JSONObject,
    ) -> JobHandle | JobFailure:
        """Validate input and submit the job once.

        Raises ``AppError(INVALID_INPUT)`` before any network call when the
        input or the key is unusable. Upload and queue problems come back as
        a ``JobFailure``.
        """
        descriptor = get_descriptor(kind) if isinstance(kind, str) else kind
        key = require_api_key(api_key)
        try:
            payload = await self._prepare_payload(descriptor, key, job_input)
        except AppError as exc:
            if exc.code == ErrorCode.INVALID_INPUT:
                raise
            return make_failure(
                kind=descriptor.kind,
                request_id=None,
                code=code_value(exc.code),
                message=exc.message,
            )
        return await submit_job(self._client, descriptor, self.base_url, key, payload)

    async def run(
        self,
        kind: str | JobDescriptor,
        api_key: str,
        job_input: JSONObject,
        on_update: OnUpdate | None = None,
    ) -> JobOutcome:
        started = time.monotonic()
        submitted = await self.submit(kind, api_key, job_input)
        if not isinstance(submitted, JobHandle):
            return submitted
        key = api_key.strip()
        polled = await poll_until_terminal(
            self._client,
            submitted,
            self.base_url,
            key,
            on_update=on_update,
            sleep=self._sleep,
        )
        if polled["state"] == "completed":
            outcome = await fetch_result(
                self._client,
                submitted,
                self.base_url,
                key,
                logs=polled["logs"],
                attempts=polled["attempts"],
            )
        else:
            outcome = polled
            if (
                outcome["state"] == "failed"
                and outcome["http_status"] is None
                and submitted.descriptor.fetch_failure_detail
            ):
                outcome = await fetch_failure_detail(
                    self._client, submitted, self.base_url, key, outcome
                )
        _logger.info(
            "job_finished",
            extra={
                "job_kind": submitted.descriptor.kind,
                "request_id": submitted.request_id,
                "status": "COMPLETED" if outcome["ok"] else outcome["code"],
                "latency_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return outcome

    async def check_status(
        self,
        kind: str | JobDescriptor,
        request_id: str,
        api_key: str,
    ) -> StatusCheck:
        """One status read, finishing the job when it has completed.

        This is the browser-driven counterpart of :meth:`run`: the caller
        decides when to poll again. A status endpoint that cannot be read is
        reported as ``UNKNOWN`` so the caller keeps polling.
        """
        descriptor = get_descriptor(kind) if isinstance(kind, str) else kind
        key = require_api_key(api_key)
        handle = JobHandle(request_id, descriptor)
        url = descriptor.status_url(self.base_url, request_id)
        try:
            resp = await self._client.get(url, headers=descriptor.auth_header(key))
        except transport_error_type() as exc:
            return _unknown(
                descriptor.kind, request_id, f"Polling status failed: {type(exc).__name__}"
            )
        if not is_success(resp):
            status_code = int(resp.status_code)
            _logger.warning(
                "job_status_unreadable",
                extra={
                    "job_kind": descriptor.kind,
                    "request_id": request_id,
                    "http_status": status_code,
                },
            )
            return _unknown(
                descriptor.kind, request_id, f"Polling status failed with status: {status_code}"
            )

        reading = read_status(load_json_object(resp.text))
        logs = reading["logs"] if reading["logs"] is not None else []
        check: StatusCheck = {
            "kind": descriptor.kind,
            "request_id": request_id,
            "status": reading["status"],
            "logs": logs,
            "error": None,
            "error_code": None,
            "artifact": None,
        }
        if reading["status"] == "COMPLETED":
            outcome = await fetch_result(
                self._client, handle, self.base_url, key, logs=logs, attempts=1
            )
            if outcome["ok"]:
                check["artifact"] = outcome["artifact"]
            else:
                check["status"] = "FAILED"
                check["error"] = outcome["message"]
                check["error_code"] = outcome["code"]
        elif reading["status"] == "FAILED":
            failure = make_failure(
                kind=descriptor.kind,
                request_id=request_id,
                code=code_value(JobErrorCode.JOB_FAILED),
                message=failed_message(reading["error"]),
                logs=logs,
                detail=reading["error"],
            )
            if descriptor.fetch_failure_detail:
                failure = await fetch_failure_detail(
                    self._client, handle, self.base_url, key, failure
                )
            check["logs"] = failure["logs"]
            check["error"] = failure["message"]
            check["error_code"] = failure["code"]
        return check


def _unknown(kind: str, request_id: str, log_line: str) -> StatusCheck:
    return {
        "kind": kind,
        "request_id": request_id,
        "status": "UNKNOWN",
        "logs": [log_line],
        "error": "Polling failed.",
        "error_code": None,
        "artifact": None,
    }


__all__ = ["JobHandle", "QueuedJobClient"]
