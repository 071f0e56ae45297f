"""The known queue job types, one descriptor each."""

from __future__ import annotations

from typing import Final

from echoes_media.descriptors import (
    JobDescriptor,
    PayloadBuilder,
    extract_model_3d,
    extract_video,
)
from echoes_media.errors import AppError, JobErrorCode
from echoes_media.json_utils import JSONObject
from echoes_media.validators import (
    optional_bool,
    optional_choice,
    optional_int,
    optional_number,
    optional_text,
    require_text,
)

_KLING_DURATIONS: Final[frozenset[str]] = frozenset({"5", "10"})
_KLING_NEGATIVE_PROMPT: Final[str] = "blur, distort, and low quality"


def _image_and_prompt(job_input: JSONObject) -> JSONObject:
    payload: JSONObject = {"image_url": require_text(job_input, "image_url", "imageUrl")}
    prompt = optional_text(job_input, "prompt")
    if prompt is not None:
        payload["prompt"] = prompt
    return payload


def _kling_standard(job_input: JSONObject) -> JSONObject:
    duration = optional_choice(job_input, _KLING_DURATIONS, "duration")
    cfg_scale = optional_number(job_input, "cfg_scale", "cfgScale", minimum=0.0, maximum=1.0)
    negative = optional_text(job_input, "negative_prompt", "negativePrompt")
    return {
        "image_url": require_text(job_input, "image_url", "imageUrl"),
        "prompt": require_text(job_input, "prompt"),
        "duration": duration if duration is not None else "5",
        "cfg_scale": cfg_scale if cfg_scale is not None else 0.5,
        "negative_prompt": negative if negative is not None else _KLING_NEGATIVE_PROMPT,
    }


def _text_to_video(job_input: JSONObject) -> JSONObject:
    return {"prompt": require_text(job_input, "prompt")}


def _ai_avatar(job_input: JSONObject) -> JSONObject:
    payload: JSONObject = {
        "image_url": require_text(job_input, "image_url", "imageUrl"),
        "audio_url": require_text(job_input, "audio_url", "audioUrl"),
        "prompt": require_text(job_input, "prompt"),
    }
    num_frames = optional_int(job_input, "num_frames", "numFrames")
    if num_frames is not None:
        payload["num_frames"] = num_frames
    seed = optional_int(job_input, "seed")
    if seed is not None:
        payload["seed"] = seed
    turbo = optional_bool(job_input, "turbo")
    if turbo is not None:
        payload["turbo"] = turbo
    return payload


def _ai_avatar_multi(job_input: JSONObject) -> JSONObject:
    payload: JSONObject = {
        "image_url": require_text(job_input, "image_url", "imageUrl"),
        "first_audio_url": require_text(job_input, "first_audio_url", "firstAudioUrl"),
        "prompt": require_text(job_input, "prompt"),
    }
    second = optional_text(job_input, "second_audio_url", "secondAudioUrl")
    if second is not None:
        payload["second_audio_url"] = second
    num_frames = optional_int(job_input, "num_frames", "numFrames")
    seed = optional_int(job_input, "seed")
    turbo = optional_bool(job_input, "turbo")
    payload["num_frames"] = num_frames if num_frames is not None else 181
    payload["seed"] = seed if seed is not None else 81
    payload["turbo"] = turbo if turbo is not None else True
    return payload


def _audio_to_video(job_input: JSONObject) -> JSONObject:
    return {
        "avatar_id": require_text(job_input, "avatar_id", "avatarId"),
        "audio_url": require_text(job_input, "audio_url", "audioUrl"),
    }


# Optional tripo3d knobs, forwarded only when supplied.
_TRIPO_INT_FIELDS: Final[tuple[str, ...]] = ("face_limit", "seed", "texture_seed")
_TRIPO_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "style",
    "texture",
    "texture_alignment",
    "orientation",
)
_TRIPO_BOOL_FIELDS: Final[tuple[str, ...]] = ("pbr", "auto_size", "quad")


def _image_to_3d(job_input: JSONObject) -> JSONObject:
    payload: JSONObject = {"image_url": require_text(job_input, "image_url", "imageUrl")}
    for name in _TRIPO_INT_FIELDS:
        int_value = optional_int(job_input, name)
        if int_value is not None:
            payload[name] = int_value
    for name in _TRIPO_TEXT_FIELDS:
        text_value = optional_text(job_input, name)
        if text_value is not None:
            payload[name] = text_value
    for name in _TRIPO_BOOL_FIELDS:
        bool_value = optional_bool(job_input, name)
        if bool_value is not None:
            payload[name] = bool_value
    return payload


def _video(
    kind: str, endpoint: str, build: PayloadBuilder = _image_and_prompt
) -> JobDescriptor:
    return JobDescriptor(
        kind=kind,
        endpoint=endpoint,
        build_payload=build,
        extract_artifact=extract_video,
    )


CATALOG: Final[dict[str, JobDescriptor]] = {
    d.kind: d
    for d in (
        _video("image-to-video", "fal-ai/kling-video/v2.1/master/image-to-video"),
        _video(
            "image-to-video-kling",
            "fal-ai/kling-video/v2.1/standard/image-to-video",
            _kling_standard,
        ),
        _video("image-to-video-minimax", "fal-ai/minimax-video/image-to-video"),
        _video("image-to-video-pixverse", "fal-ai/pixverse/v4.5/image-to-video"),
        _video("text-to-video-kling", "fal-ai/kling", _text_to_video),
        _video("text-to-video", "fal-ai/veo3", _text_to_video),
        _video("ai-avatar", "fal-ai/ai-avatar", _ai_avatar),
        JobDescriptor(
            kind="ai-avatar-multi",
            endpoint="fal-ai/ai-avatar/multi",
            build_payload=_ai_avatar_multi,
            extract_artifact=extract_video,
            poll_delay_seconds=2.0,
            max_attempts=150,
            upload_media_fields=("image_url", "first_audio_url", "second_audio_url"),
        ),
        _video("audio-to-video", "veed/avatars/audio-to-video", _audio_to_video),
        JobDescriptor(
            kind="image-to-3d",
            endpoint="tripo3d/tripo/v2.5/image-to-3d",
            build_payload=_image_to_3d,
            extract_artifact=extract_model_3d,
        ),
    )
}


def get_descriptor(kind: str) -> JobDescriptor:
    descriptor = CATALOG.get(kind)
    if descriptor is None:
        raise AppError(JobErrorCode.JOB_KIND_NOT_FOUND, f"Unknown job kind: {kind}", 404)
    return descriptor


def list_kinds() -> list[str]:
    return sorted(CATALOG)


__all__ = ["CATALOG", "get_descriptor", "list_kinds"]
