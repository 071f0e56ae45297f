from __future__ import annotations

from echoes_media.errors import AppError, ErrorCode
from echoes_media.json_utils import JSONObject, JSONValue
from echoes_media.types import JobRequest


def _invalid(message: str) -> AppError[ErrorCode]:
    return AppError(ErrorCode.INVALID_INPUT, message, 400)


def lookup(job_input: JSONObject, names: tuple[str, ...]) -> JSONValue:
    """Return the first non-null value among ``names`` (wire name first, then aliases)."""
    for name in names:
        value = job_input.get(name)
        if value is not None:
            return value
    return None


def require_text(job_input: JSONObject, *names: str) -> str:
    value = lookup(job_input, names)
    if value is None:
        raise _invalid(f"{names[0]} is required")
    if not isinstance(value, str):
        raise _invalid(f"{names[0]} must be a string")
    stripped = value.strip()
    if stripped == "":
        raise _invalid(f"{names[0]} is required")
    return stripped


def optional_text(job_input: JSONObject, *names: str) -> str | None:
    value = lookup(job_input, names)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _invalid(f"{names[0]} must be a string")
    stripped = value.strip()
    return stripped if stripped != "" else None


def optional_int(job_input: JSONObject, *names: str) -> int | None:
    value = lookup(job_input, names)
    if value is None:
        return None
    if isinstance(value, bool):
        raise _invalid(f"{names[0]} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise _invalid(f"{names[0]} must be an integer")


def optional_number(
    job_input: JSONObject,
    *names: str,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    value = lookup(job_input, names)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _invalid(f"{names[0]} must be a number")
    number = float(value)
    if minimum is not None and number < minimum:
        raise _invalid(f"{names[0]} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise _invalid(f"{names[0]} must be <= {maximum}")
    return number


def optional_bool(job_input: JSONObject, *names: str) -> bool | None:
    value = lookup(job_input, names)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid(f"{names[0]} must be a boolean")
    return value


def optional_choice(
    job_input: JSONObject, allowed: frozenset[str], *names: str
) -> str | None:
    """Validate a string enum; integers are accepted by their decimal form."""
    value = lookup(job_input, names)
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or value not in allowed:
        opts = ", ".join(sorted(allowed))
        raise _invalid(f"{names[0]} must be one of: {opts}")
    return value


def require_api_key(value: JSONValue) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise _invalid("api_key is required")
    return value.strip()


def decode_job_body(kind: str, body: JSONValue) -> JobRequest:
    """Decode ``{"api_key": str, "input": {...}}`` from an HTTP request body."""
    if not isinstance(body, dict):
        raise _invalid("Invalid request body")
    api_key = require_api_key(body.get("api_key"))
    raw_input = body.get("input")
    job_input: JSONObject
    if raw_input is None:
        job_input = {}
    elif isinstance(raw_input, dict):
        job_input = raw_input
    else:
        raise _invalid("input must be an object")
    return {"kind": kind, "api_key": api_key, "input": job_input}


__all__ = [
    "decode_job_body",
    "lookup",
    "optional_bool",
    "optional_choice",
    "optional_int",
    "optional_number",
    "optional_text",
    "require_api_key",
    "require_text",
]
