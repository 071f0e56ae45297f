"""Submission stage: one authenticated POST that yields a queue request id."""

from __future__ import annotations

from echoes_media.descriptors import JobDescriptor
from echoes_media.errors import JobErrorCode, code_value
from echoes_media.http_client import HttpxAsyncClient, is_success, transport_error_type
from echoes_media.json_utils import JSONObject, load_json_object, optional_str
from echoes_media.logging import get_logger
from echoes_media.types import JobFailure, make_failure

_logger = get_logger(__name__)


class JobHandle:
    """A job accepted by the queue. Only the submission stage creates these."""

    __slots__ = ("_descriptor", "_request_id")

    def __init__(self, request_id: str, descriptor: JobDescriptor) -> None:
        self._request_id = request_id
        self._descriptor = descriptor

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def descriptor(self) -> JobDescriptor:
        return self._descriptor

    def __repr__(self) -> str:
        return f"JobHandle(kind={self._descriptor.kind!r}, request_id={self._request_id!r})"


async def submit_job(
    client: HttpxAsyncClient,
    descriptor: JobDescriptor,
    base_url: str,
    api_key: str,
    payload: JSONObject,
) -> JobHandle | JobFailure:
    """POST ``payload`` to the descriptor's endpoint exactly once.

    Never retried: after a transport error the job may or may not have been
    queued, and a blind resubmit could run it twice.
    """
    kind = descriptor.kind
    url = descriptor.submit_url(base_url)
    headers = descriptor.auth_header(api_key)
    try:
        resp = await client.post(url, headers=headers, json=payload)
    except transport_error_type() as exc:
        _logger.warning(
            "job_submit_transport_error",
            extra={"job_kind": kind, "error_code": code_value(JobErrorCode.SUBMISSION_FAILED)},
        )
        return make_failure(
            kind=kind,
            request_id=None,
            code=code_value(JobErrorCode.SUBMISSION_FAILED),
            message=(
                "Could not reach the queue; the job may or may not have been queued. "
                f"({type(exc).__name__})"
            ),
        )

    status = int(resp.status_code)
    if status == 401:
        _logger.info("job_submit_unauthorized", extra={"job_kind": kind, "http_status": status})
        return make_failure(
            kind=kind,
            request_id=None,
            code=code_value(JobErrorCode.INVALID_CREDENTIAL),
            message="Authentication failed. Please check your Fal.ai API key.",
            http_status=status,
            detail=resp.text,
        )
    if not is_success(resp):
        _logger.warning("job_submit_rejected", extra={"job_kind": kind, "http_status": status})
        return make_failure(
            kind=kind,
            request_id=None,
            code=code_value(JobErrorCode.SUBMISSION_FAILED),
            message=f"Failed to submit job to queue. Status: {status}",
            http_status=status,
            detail=resp.text,
        )

    body = load_json_object(resp.text)
    request_id = optional_str(body, "request_id") if body is not None else None
    if request_id is None or request_id.strip() == "":
        _logger.warning(
            "job_submit_protocol_violation", extra={"job_kind": kind, "http_status": status}
        )
        return make_failure(
            kind=kind,
            request_id=None,
            code=code_value(JobErrorCode.PROTOCOL_VIOLATION),
            message="Failed to get a request ID from the queue.",
            http_status=status,
            detail=resp.text,
        )

    _logger.info("job_submitted", extra={"job_kind": kind, "request_id": request_id})
    return JobHandle(request_id, descriptor)


__all__ = ["JobHandle", "submit_job"]
