"""Echoes media API routes.

Endpoints:
    Health:
        GET  /healthz                          - Liveness probe (always returns ok)

    Jobs:
        GET  /v1/jobs                          - Known job kinds
        POST /v1/jobs/{kind}                   - Submit a job, returns its request_id
        GET  /v1/jobs/{kind}/{request_id}      - One status read (X-Api-Key header)
        POST /v1/jobs/{kind}/run               - Submit and wait for the outcome
"""

from __future__ import annotations

from .health import build_router as build_health_router
from .jobs import build_router as build_jobs_router

__all__ = [
    "build_health_router",
    "build_jobs_router",
]
