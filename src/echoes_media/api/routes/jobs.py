from __future__ import annotations

from collections.abc import Callable
from typing import NoReturn

from fastapi import APIRouter, Header, Request
from starlette.responses import JSONResponse

from ...catalog import get_descriptor, list_kinds
from ...client import QueuedJobClient
from ...errors import AppError, ErrorCode, JobErrorCode
from ...json_utils import InvalidJsonError, JSONValue, load_json_bytes
from ...submission import JobHandle
from ...types import JobFailure
from ...validators import decode_job_body, require_api_key


async def _read_json(request: Request) -> JSONValue:
    body = await request.body()
    try:
        return load_json_bytes(body)
    except InvalidJsonError as exc:
        raise AppError(ErrorCode.INVALID_INPUT, "Invalid JSON body", 400) from exc


def _raise_failure(failure: JobFailure) -> NoReturn:
    raise AppError(JobErrorCode(failure["code"]), failure["message"])


def build_router(provide_client: Callable[[], QueuedJobClient]) -> APIRouter:
    """Job routes; the browser drives polling via the status endpoint."""
    router = APIRouter()

    def _list_kinds() -> JSONResponse:
        return JSONResponse(content={"kinds": list_kinds()})

    async def _submit(kind: str, request: Request) -> JSONResponse:
        descriptor = get_descriptor(kind)
        job = decode_job_body(descriptor.kind, await _read_json(request))
        submitted = await provide_client().submit(descriptor, job["api_key"], job["input"])
        if not isinstance(submitted, JobHandle):
            _raise_failure(submitted)
        return JSONResponse(
            content={"kind": descriptor.kind, "request_id": submitted.request_id}
        )

    async def _status(
        kind: str,
        request_id: str,
        x_api_key: str | None = Header(default=None, alias="X-Api-Key"),
    ) -> JSONResponse:
        descriptor = get_descriptor(kind)
        api_key = require_api_key(x_api_key)
        check = await provide_client().check_status(descriptor, request_id, api_key)
        return JSONResponse(content=dict(check))

    async def _run(kind: str, request: Request) -> JSONResponse:
        descriptor = get_descriptor(kind)
        job = decode_job_body(descriptor.kind, await _read_json(request))
        outcome = await provide_client().run(descriptor, job["api_key"], job["input"])
        if not outcome["ok"]:
            _raise_failure(outcome)
        return JSONResponse(content=dict(outcome))

    router.add_api_route("/v1/jobs", _list_kinds, methods=["GET"])
    router.add_api_route("/v1/jobs/{kind}", _submit, methods=["POST"])
    router.add_api_route("/v1/jobs/{kind}/run", _run, methods=["POST"])
    router.add_api_route("/v1/jobs/{kind}/{request_id}", _status, methods=["GET"])
    return router


__all__ = ["build_router"]
