"""Per-job-type configuration consumed by the generic queue engine.

A descriptor is a stateless bundle of URLs, timing knobs and two pure
functions: one that turns validated user input into the wire payload, and
one that pulls the artifact out of a completed job's result body.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Callable

from echoes_media.json_utils import JSONObject, nested_url
from echoes_media.types import Artifact, Model3DArtifact, VideoArtifact

PayloadBuilder = Callable[[JSONObject], JSONObject]
ArtifactExtractor = Callable[[JSONObject], Artifact]


class MalformedResultError(ValueError):
    """Raised when a completed job's result body lacks the artifact fields."""


class JobDescriptor:
    __slots__ = (
        "_build",
        "_endpoint",
        "_extract",
        "_fetch_failure_detail",
        "_kind",
        "_max_attempts",
        "_not_found_grace_attempts",
        "_poll_delay_seconds",
        "_upload_media_fields",
    )

    def __init__(
        self,
        *,
        kind: str,
        endpoint: str,
        build_payload: PayloadBuilder,
        extract_artifact: ArtifactExtractor,
        poll_delay_seconds: float = 3.0,
        max_attempts: int = 100,
        not_found_grace_attempts: int = 10,
        fetch_failure_detail: bool = True,
        upload_media_fields: tuple[str, ...] = (),
    ) -> None:
        if kind.strip() == "":
            raise ValueError("kind must be non-empty")
        if endpoint.strip("/") == "":
            raise ValueError("endpoint must be non-empty")
        if poll_delay_seconds < 0:
            raise ValueError("poll_delay_seconds must be >= 0")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not_found_grace_attempts < 0:
            raise ValueError("not_found_grace_attempts must be >= 0")
        self._kind = kind
        self._endpoint = endpoint.strip("/")
        self._build = build_payload
        self._extract = extract_artifact
        self._poll_delay_seconds = float(poll_delay_seconds)
        self._max_attempts = int(max_attempts)
        self._not_found_grace_attempts = int(not_found_grace_attempts)
        self._fetch_failure_detail = fetch_failure_detail
        self._upload_media_fields = upload_media_fields

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def poll_delay_seconds(self) -> float:
        return self._poll_delay_seconds

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def not_found_grace_attempts(self) -> int:
        return self._not_found_grace_attempts

    @property
    def fetch_failure_detail(self) -> bool:
        return self._fetch_failure_detail

    @property
    def upload_media_fields(self) -> tuple[str, ...]:
        """Wire fields whose data-URI values are uploaded before submission."""
        return self._upload_media_fields

    def submit_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{self._endpoint}"

    def result_url(self, base_url: str, request_id: str) -> str:
        quoted = urllib.parse.quote(request_id, safe="")
        return f"{self.submit_url(base_url)}/requests/{quoted}"

    def status_url(self, base_url: str, request_id: str) -> str:
        return f"{self.result_url(base_url, request_id)}/status"

    @staticmethod
    def auth_header(api_key: str) -> dict[str, str]:
        return {"Authorization": f"Key {api_key}"}

    def build_payload(self, job_input: JSONObject) -> JSONObject:
        return self._build(job_input)

    def extract_artifact(self, result_body: JSONObject) -> Artifact:
        return self._extract(result_body)

    def __repr__(self) -> str:
        return f"JobDescriptor(kind={self._kind!r}, endpoint={self._endpoint!r})"


def extract_video(result_body: JSONObject) -> VideoArtifact:
    """``{"video": {"url": ...}}`` -> ``{"video_url": ...}``."""
    url = nested_url(result_body, "video")
    if url is None:
        raise MalformedResultError("Job completed, but the video URL is missing.")
    return {"video_url": url}


def extract_model_3d(result_body: JSONObject) -> Model3DArtifact:
    """Mesh is required; the render and PBR model are optional extras."""
    mesh_url = nested_url(result_body, "model_mesh")
    if mesh_url is None:
        raise MalformedResultError("3D model generation completed, but the model URL is missing.")
    return {
        "model_mesh_url": mesh_url,
        "rendered_image_url": nested_url(result_body, "rendered_image"),
        "pbr_model_url": nested_url(result_body, "pbr_model"),
    }


__all__ = [
    "ArtifactExtractor",
    "JobDescriptor",
    "MalformedResultError",
    "PayloadBuilder",
    "extract_model_3d",
    "extract_video",
]
