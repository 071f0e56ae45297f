from __future__ import annotations

from collections.abc import Mapping
from types import ModuleType
from typing import Protocol

from echoes_media.json_utils import JSONValue


class HttpxResponse(Protocol):
    status_code: int
    text: str
    headers: Mapping[str, str]
    content: bytes | bytearray


class Timeout(Protocol):
    def __repr__(self) -> str: ...


class _TimeoutCtor(Protocol):
    def __call__(self, timeout: float) -> Timeout: ...


class AsyncTransport(Protocol):
    async def aclose(self) -> None: ...


class HttpxAsyncClient(Protocol):
    """The slice of ``httpx.AsyncClient`` the queue engine relies on."""

    async def aclose(self) -> None: ...

    async def post(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        json: JSONValue | None = None,
        content: bytes | None = None,
    ) -> HttpxResponse: ...

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
    ) -> HttpxResponse: ...


class _AsyncClientCtor(Protocol):
    def __call__(
        self,
        *,
        timeout: Timeout,
        transport: AsyncTransport | None = None,
    ) -> HttpxAsyncClient: ...


class _TransportErrorModule(Protocol):
    TransportError: type[Exception]


def _load_httpx() -> tuple[_TimeoutCtor, _AsyncClientCtor]:
    mod: ModuleType = __import__("httpx")
    timeout_ctor: _TimeoutCtor = object.__getattribute__(mod, "Timeout")
    async_ctor: _AsyncClientCtor = object.__getattribute__(mod, "AsyncClient")
    return timeout_ctor, async_ctor


def transport_error_type() -> type[Exception]:
    """``httpx.TransportError``: connect, read and write failures, timeouts."""
    mod: _TransportErrorModule = __import__("httpx")
    return mod.TransportError


def build_async_client(
    timeout_seconds: float, transport: AsyncTransport | None = None
) -> HttpxAsyncClient:
    timeout_ctor, async_ctor = _load_httpx()
    timeout_obj = timeout_ctor(float(timeout_seconds))
    if transport is None:
        return async_ctor(timeout=timeout_obj)
    return async_ctor(timeout=timeout_obj, transport=transport)


def is_success(resp: HttpxResponse) -> bool:
    return 200 <= int(resp.status_code) < 300


__all__ = [
    "AsyncTransport",
    "HttpxAsyncClient",
    "HttpxResponse",
    "Timeout",
    "build_async_client",
    "is_success",
    "transport_error_type",
]
