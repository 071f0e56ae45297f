from __future__ import annotations

import pytest

from echoes_media.errors import AppError, ErrorCode
from echoes_media.validators import (
    decode_job_body,
    lookup,
    optional_bool,
    optional_choice,
    optional_int,
    optional_number,
    optional_text,
    require_api_key,
    require_text,
)


def test_lookup_prefers_first_non_null_name() -> None:
    assert lookup({"image_url": None, "imageUrl": "b"}, ("image_url", "imageUrl")) == "b"
    assert lookup({"image_url": "a", "imageUrl": "b"}, ("image_url", "imageUrl")) == "a"
    assert lookup({}, ("x",)) is None


def test_require_text() -> None:
    assert require_text({"prompt": "  hi "}, "prompt") == "hi"
    with pytest.raises(AppError) as exc_info:
        require_text({"prompt": ""}, "prompt")
    assert exc_info.value.code == ErrorCode.INVALID_INPUT
    assert exc_info.value.http_status == 400
    assert exc_info.value.message == "prompt is required"
    with pytest.raises(AppError):
        require_text({"prompt": 3}, "prompt")


def test_optional_text() -> None:
    assert optional_text({}, "style") is None
    assert optional_text({"style": "  "}, "style") is None
    assert optional_text({"style": "cartoon"}, "style") == "cartoon"
    with pytest.raises(AppError):
        optional_text({"style": ["x"]}, "style")


def test_optional_int() -> None:
    assert optional_int({"seed": 4}, "seed") == 4
    assert optional_int({"seed": 4.0}, "seed") == 4
    assert optional_int({}, "seed") is None
    for bad in (True, 4.5, "4"):
        with pytest.raises(AppError):
            optional_int({"seed": bad}, "seed")


def test_optional_number_bounds() -> None:
    assert optional_number({"cfg": 0}, "cfg", minimum=0.0, maximum=1.0) == 0.0
    with pytest.raises(AppError):
        optional_number({"cfg": -0.1}, "cfg", minimum=0.0)
    with pytest.raises(AppError):
        optional_number({"cfg": 2}, "cfg", maximum=1.0)
    with pytest.raises(AppError):
        optional_number({"cfg": False}, "cfg")


def test_optional_bool_and_choice() -> None:
    assert optional_bool({"turbo": False}, "turbo") is False
    with pytest.raises(AppError):
        optional_bool({"turbo": 1}, "turbo")
    allowed = frozenset({"5", "10"})
    assert optional_choice({"duration": 5}, allowed, "duration") == "5"
    assert optional_choice({}, allowed, "duration") is None
    with pytest.raises(AppError) as exc_info:
        optional_choice({"duration": "6"}, allowed, "duration")
    assert exc_info.value.message == "duration must be one of: 10, 5"


def test_require_api_key() -> None:
    assert require_api_key(" key ") == "key"
    for bad in (None, "", "   ", 12):
        with pytest.raises(AppError):
            require_api_key(bad)


def test_decode_job_body() -> None:
    assert decode_job_body("ai-avatar", {"api_key": "k", "input": {"prompt": "p"}}) == {
        "kind": "ai-avatar",
        "api_key": "k",
        "input": {"prompt": "p"},
    }
    assert decode_job_body("ai-avatar", {"api_key": "k"})["input"] == {}
    with pytest.raises(AppError):
        decode_job_body("ai-avatar", [])
    with pytest.raises(AppError):
        decode_job_body("ai-avatar", {"api_key": "k", "input": "prompt"})
    with pytest.raises(AppError):
        decode_job_body("ai-avatar", {"input": {}})
