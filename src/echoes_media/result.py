from __future__ import annotations

from echoes_media.descriptors import MalformedResultError
from echoes_media.errors import JobErrorCode, code_value
from echoes_media.http_client import HttpxAsyncClient, is_success, transport_error_type
from echoes_media.json_utils import dump_json_str, load_json_object
from echoes_media.logging import get_logger
from echoes_media.polling import parse_logs
from echoes_media.submission import JobHandle
from echoes_media.types import JobFailure, JobOutcome, make_failure

_logger = get_logger(__name__)


async def fetch_result(
    client: HttpxAsyncClient,
    handle: JobHandle,
    base_url: str,
    api_key: str,
    *,
    logs: list[str],
    attempts: int,
) -> JobOutcome:
    """GET the result of a completed job and extract its artifact.

    Must only be called after the status endpoint reported completion; the
    artifact is extracted from the result body, never the status body.
    """
    descriptor = handle.descriptor
    kind = descriptor.kind
    request_id = handle.request_id
    url = descriptor.result_url(base_url, request_id)
    try:
        resp = await client.get(url, headers=descriptor.auth_header(api_key))
    except transport_error_type() as exc:
        _logger.warning(
            "job_result_transport_error",
            extra={"job_kind": kind, "request_id": request_id, "error_type": type(exc).__name__},
        )
        return make_failure(
            kind=kind,
            request_id=request_id,
            code=code_value(JobErrorCode.RESULT_UNAVAILABLE),
            message="Job completed, but the result could not be fetched.",
            logs=logs,
        )

    status_code = int(resp.status_code)
    if not is_success(resp):
        _logger.warning(
            "job_result_unavailable",
            extra={"job_kind": kind, "request_id": request_id, "http_status": status_code},
        )
        return make_failure(
            kind=kind,
            request_id=request_id,
            code=code_value(JobErrorCode.RESULT_UNAVAILABLE),
            message=f"Failed to fetch final result. Status: {status_code}",
            logs=logs,
            http_status=status_code,
            detail=resp.text,
        )

    body = load_json_object(resp.text)
    if body is None:
        return make_failure(
            kind=kind,
            request_id=request_id,
            code=code_value(JobErrorCode.MALFORMED_RESULT),
            message="Job completed, but the result is not a JSON object.",
            logs=logs,
            http_status=status_code,
            detail=resp.text,
        )
    try:
        artifact = descriptor.extract_artifact(body)
    except MalformedResultError as exc:
        _logger.warning(
            "job_result_malformed",
            extra={
                "job_kind": kind,
                "request_id": request_id,
                "error_code": code_value(JobErrorCode.MALFORMED_RESULT),
            },
        )
        return make_failure(
            kind=kind,
            request_id=request_id,
            code=code_value(JobErrorCode.MALFORMED_RESULT),
            message=str(exc),
            logs=logs,
            http_status=status_code,
            detail=resp.text,
        )

    return {
        "ok": True,
        "kind": kind,
        "request_id": request_id,
        "artifact": artifact,
        "logs": list(logs),
        "attempts": attempts,
    }


async def fetch_failure_detail(
    client: HttpxAsyncClient,
    handle: JobHandle,
    base_url: str,
    api_key: str,
    failure: JobFailure,
) -> JobFailure:
    """Best-effort enrichment of a failed job from its result endpoint.

    The queue usually explains a failure in the result body's ``detail``
    field, and failed jobs often answer the result URL with a non-2xx JSON
    body. When the status payload already named an error, that error stays
    the reason: a 2xx result detail is appended to it and a non-2xx one is
    ignored. Any problem fetching the result leaves ``failure`` as it was.
    """
    descriptor = handle.descriptor
    url = descriptor.result_url(base_url, handle.request_id)
    try:
        resp = await client.get(url, headers=descriptor.auth_header(api_key))
    except transport_error_type():
        return failure
    body = load_json_object(resp.text)
    if body is None:
        return failure

    status_error = failure["detail"]
    if status_error is not None and not is_success(resp):
        return failure

    raw_detail = body.get("detail")
    if isinstance(raw_detail, str) and raw_detail.strip() != "":
        fetched = raw_detail
    elif raw_detail is not None:
        fetched = dump_json_str(raw_detail)
    else:
        fetched = dump_json_str(body)
    if status_error is None:
        detail = fetched
    elif fetched == status_error:
        detail = status_error
    else:
        detail = f"{status_error} ({fetched})"
    logs = parse_logs(body.get("logs"))

    _logger.info(
        "job_failure_detail",
        extra={
            "job_kind": descriptor.kind,
            "request_id": handle.request_id,
            "http_status": int(resp.status_code),
        },
    )
    return make_failure(
        kind=failure["kind"],
        request_id=failure["request_id"],
        code=failure["code"],
        message=f"Job failed. Reason: {detail}",
        logs=logs if logs is not None else failure["logs"],
        http_status=failure["http_status"],
        detail=detail,
        state=failure["state"],
    )


__all__ = ["fetch_failure_detail", "fetch_result"]
