from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from ..client import QueuedJobClient
from ..errors import install_exception_handlers
from ..logging import setup_logging
from ..settings import QueueSettings, load_settings
from .routes import health as routes_health
from .routes import jobs as routes_jobs

# Emitted alongside the job fields the formatters always include.
_EXTRA_LOG_FIELDS = (
    "error_type",
    "error_message",
    "path",
    "method",
    "content_type",
    "size_bytes",
)


def _client_lifespan(
    client: QueuedJobClient,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await client.aclose()

    return _lifespan


def create_app(
    settings: QueueSettings | None = None,
    job_client: QueuedJobClient | None = None,
) -> FastAPI:
    cfg = settings if settings is not None else load_settings()
    setup_logging(
        level=cfg["log_level"],
        format_mode=cfg["log_format"],
        service_name="echoes-media",
        instance_id=None,
        extra_fields=list(_EXTRA_LOG_FIELDS),
    )
    client = job_client if job_client is not None else QueuedJobClient(cfg)

    def _provide_client() -> QueuedJobClient:
        return client

    app = FastAPI(title="echoes-media", version="0.1.0", lifespan=_client_lifespan(client))
    install_exception_handlers(app, logger_name="echoes-media")
    app.include_router(routes_health.build_router())
    app.include_router(routes_jobs.build_router(_provide_client))
    return app


__all__ = ["create_app"]
