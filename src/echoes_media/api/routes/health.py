from __future__ import annotations

from typing import Literal

from fastapi import APIRouter
from typing_extensions import TypedDict


class HealthResponse(TypedDict):
    """Response for the liveness probe (/healthz)."""

    status: Literal["ok"]


def healthz() -> HealthResponse:
    """Liveness only; the queue provider is not contacted."""
    return {"status": "ok"}


def build_router() -> APIRouter:
    router = APIRouter()
    router.add_api_route("/healthz", healthz, methods=["GET"])
    return router


__all__ = ["HealthResponse", "build_router", "healthz"]
