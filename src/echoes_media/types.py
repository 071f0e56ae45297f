from __future__ import annotations

from collections.abc import Callable
from typing import Literal, TypedDict

from echoes_media.json_utils import JSONObject

JobStatus = Literal["IN_QUEUE", "IN_PROGRESS", "COMPLETED", "FAILED", "UNKNOWN"]
FailureState = Literal["failed", "timed_out"]


class JobRequest(TypedDict):
    """One invocation's input. ``api_key`` must never be logged or stored."""

    kind: str
    api_key: str
    input: JSONObject


class StatusSnapshot(TypedDict):
    """What a single status poll observed.

    ``logs`` is a full replacement snapshot, not a delta.
    """

    request_id: str
    attempt: int
    status: JobStatus
    raw_status: str | None
    logs: list[str]
    error: str | None


class VideoArtifact(TypedDict):
    video_url: str


class Model3DArtifact(TypedDict):
    model_mesh_url: str
    rendered_image_url: str | None
    pbr_model_url: str | None


Artifact = VideoArtifact | Model3DArtifact


class JobSucceeded(TypedDict):
    ok: Literal[True]
    kind: str
    request_id: str
    artifact: Artifact
    logs: list[str]
    attempts: int


class JobFailure(TypedDict):
    ok: Literal[False]
    kind: str
    request_id: str | None
    state: FailureState
    code: str
    message: str
    logs: list[str]
    http_status: int | None
    detail: str | None


JobOutcome = JobSucceeded | JobFailure


class PollCompleted(TypedDict):
    state: Literal["completed"]
    logs: list[str]
    attempts: int


PollOutcome = PollCompleted | JobFailure


class StatusCheck(TypedDict):
    """Single status read, with the artifact attached once completed."""

    kind: str
    request_id: str
    status: JobStatus
    logs: list[str]
    error: str | None
    error_code: str | None
    artifact: Artifact | None


OnUpdate = Callable[[StatusSnapshot], None]


def make_failure(
    *,
    kind: str,
    request_id: str | None,
    code: str,
    message: str,
    logs: list[str] | None = None,
    http_status: int | None = None,
    detail: str | None = None,
    state: FailureState = "failed",
) -> JobFailure:
    return {
        "ok": False,
        "kind": kind,
        "request_id": request_id,
        "state": state,
        "code": code,
        "message": message,
        "logs": list(logs) if logs is not None else [],
        "http_status": http_status,
        "detail": detail,
    }


__all__ = [
    "Artifact",
    "FailureState",
    "JobFailure",
    "JobOutcome",
    "JobRequest",
    "JobStatus",
    "JobSucceeded",
    "Model3DArtifact",
    "OnUpdate",
    "PollCompleted",
    "PollOutcome",
    "StatusCheck",
    "StatusSnapshot",
    "VideoArtifact",
    "make_failure",
]
