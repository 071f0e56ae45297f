from __future__ import annotations

from enum import Enum
from typing import Final, Generic, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from echoes_media.logging import get_logger
from echoes_media.request_context import request_id_var


class ErrorCodeBase(str, Enum):
    """Base class for error code enums.

    Each member is both an Enum and a str, so it serializes as its value.
    """

    value: str


class ErrorCode(ErrorCodeBase):
    """Generic service error codes shared by every surface."""

    INVALID_INPUT = "INVALID_INPUT"  # 400 - validation failed
    INTERNAL_ERROR = "INTERNAL_ERROR"  # 500


class JobErrorCode(ErrorCodeBase):
    """Failure kinds of a queued media job.

    TRANSIENT is absorbed inside the polling loop and never returned to a
    caller; it exists so the loop can log what it skipped.
    """

    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    PROTOCOL_VIOLATION = "PROTOCOL_VIOLATION"
    TRANSIENT = "TRANSIENT"
    JOB_FAILED = "JOB_FAILED"
    TIMED_OUT = "TIMED_OUT"
    MALFORMED_RESULT = "MALFORMED_RESULT"
    RESULT_UNAVAILABLE = "RESULT_UNAVAILABLE"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    JOB_KIND_NOT_FOUND = "JOB_KIND_NOT_FOUND"


ErrorCodeType = TypeVar("ErrorCodeType", bound=ErrorCodeBase)


class AppError(Exception, Generic[ErrorCodeType]):
    """Application error with a machine-readable code and an HTTP status.

    Example:
        >>> raise AppError(ErrorCode.INVALID_INPUT, "prompt is required")
    """

    def __init__(self, code: ErrorCodeType, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status if http_status is not None else default_status_for(code)


_ERROR_CODE_STATUS: Final[dict[ErrorCodeBase, int]] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.INTERNAL_ERROR: 500,
    JobErrorCode.INVALID_CREDENTIAL: 401,
    JobErrorCode.JOB_KIND_NOT_FOUND: 404,
    JobErrorCode.SUBMISSION_FAILED: 502,
    JobErrorCode.PROTOCOL_VIOLATION: 502,
    JobErrorCode.TRANSIENT: 503,
    JobErrorCode.JOB_FAILED: 502,
    JobErrorCode.MALFORMED_RESULT: 502,
    JobErrorCode.RESULT_UNAVAILABLE: 502,
    JobErrorCode.UPLOAD_FAILED: 502,
    JobErrorCode.TIMED_OUT: 504,
}


def default_status_for(code: ErrorCodeBase) -> int:
    return _ERROR_CODE_STATUS.get(code, 500)


def code_value(code: ErrorCodeBase) -> str:
    """Return "INVALID_INPUT" rather than "ErrorCode.INVALID_INPUT"."""
    result: str = code.value
    return result


def error_body(code: str, message: str, request_id: str) -> dict[str, str]:
    return {"code": code, "message": message, "request_id": request_id}


def install_exception_handlers(
    app: FastAPI,
    *,
    logger_name: str = "app",
) -> None:
    """Install JSON error handlers for AppError and unhandled exceptions.

    User errors (4xx) are logged at INFO without a traceback, system errors
    (5xx) and unhandled exceptions at ERROR with one. Every response body is
    ``{"code", "message", "request_id"}``.
    """
    logger = get_logger(logger_name)

    async def _app_error_handler(request: Request, exc: Exception) -> JSONResponse:
        if not isinstance(exc, AppError):
            return await _unhandled_handler(request, exc)
        rid = request_id_var.get()
        code = code_value(exc.code)
        fields = {
            "error_code": code,
            "error_message": exc.message,
            "path": request.url.path,
            "method": request.method,
        }
        if exc.http_status < 500:
            logger.info("user_error", extra=fields)
        else:
            logger.error("system_error", extra=fields, exc_info=True)
        return JSONResponse(
            content=error_body(code, exc.message, rid), status_code=exc.http_status
        )

    async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        rid = request_id_var.get()
        logger.error(
            "unhandled_exception",
            extra={
                "error_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            },
            exc_info=True,
        )
        return JSONResponse(
            content=error_body(code_value(ErrorCode.INTERNAL_ERROR), "Internal server error", rid),
            status_code=500,
        )

    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(Exception, _unhandled_handler)


__all__ = [
    "AppError",
    "ErrorCode",
    "ErrorCodeBase",
    "JobErrorCode",
    "code_value",
    "default_status_for",
    "error_body",
    "install_exception_handlers",
]
