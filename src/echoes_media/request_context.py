from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Protocol

# Request ID of the HTTP request being served, readable from any coroutine.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "x-request-id"


class _HeadersMutable(Protocol):
    def __setitem__(self, key: str, value: str) -> None: ...


class _HeadersReadable(Protocol):
    def get(self, key: str) -> str | None: ...


class _RequestAdapter(Protocol):
    @property
    def headers(self) -> _HeadersReadable: ...


class _ResponseAdapter(Protocol):
    @property
    def headers(self) -> _HeadersMutable: ...


class _CallNext(Protocol):
    async def __call__(self, request: _RequestAdapter) -> _ResponseAdapter: ...


class _CallNextMiddleware(Protocol):
    async def __call__(
        self, request: _RequestAdapter, call_next: _CallNext
    ) -> _ResponseAdapter: ...


class _MiddlewareDecorator(Protocol):
    def __call__(self, func: _CallNextMiddleware) -> _CallNextMiddleware: ...


class _FastAPIAppProto(Protocol):
    def middleware(self, name: str) -> _MiddlewareDecorator: ...


def resolve_request_id(incoming: str | None) -> str:
    """Keep the caller's correlation ID, or mint one."""
    if incoming is not None and incoming.strip() != "":
        return incoming.strip()
    return str(uuid.uuid4())


def install_request_id_middleware(app: _FastAPIAppProto) -> None:
    """Echo ``X-Request-ID`` on every response and expose it via ``request_id_var``."""
    decorator = app.middleware("http")

    @decorator
    async def _middleware(request: _RequestAdapter, call_next: _CallNext) -> _ResponseAdapter:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            request_id_var.reset(token)


__all__ = [
    "REQUEST_ID_HEADER",
    "install_request_id_middleware",
    "request_id_var",
    "resolve_request_id",
]
