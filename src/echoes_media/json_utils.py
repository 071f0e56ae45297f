from __future__ import annotations

from collections.abc import Mapping, Sequence
from json import JSONDecodeError
from typing import Protocol

JSONValue = dict[str, "JSONValue"] | list["JSONValue"] | str | int | float | bool | None
JSONObject = dict[str, JSONValue]

# Anything we are willing to serialize: TypedDicts arrive as Mappings.
_JSONInputValue = str | int | float | bool | None | Mapping[str, object] | Sequence[object]


class InvalidJsonError(ValueError):
    """Raised when JSON parsing fails."""


class _JsonLoads(Protocol):
    def __call__(self, s: str) -> JSONValue: ...


class _JsonDumps(Protocol):
    def __call__(
        self,
        obj: _JSONInputValue,
        *,
        separators: tuple[str, str] | None = ...,
    ) -> str: ...


def dump_json_str(value: _JSONInputValue, *, compact: bool = True) -> str:
    """Serialize a JSON-compatible value to a string."""
    module = __import__("json")
    dumps: _JsonDumps = module.dumps
    if compact:
        return dumps(value, separators=(",", ":"))
    return dumps(value, separators=None)


def load_json_str(raw: str) -> JSONValue:
    module = __import__("json")
    loads: _JsonLoads = module.loads
    try:
        value = loads(raw)
    except JSONDecodeError as exc:
        raise InvalidJsonError("Invalid JSON payload") from exc
    if isinstance(value, (dict, list, str, int, float, bool)) or value is None:
        return value
    raise InvalidJsonError("Invalid JSON payload")


def load_json_bytes(raw: bytes) -> JSONValue:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidJsonError("Invalid JSON payload") from exc
    return load_json_str(text)


def load_json_object(raw: str) -> JSONObject | None:
    """Parse text and return it only when it is a JSON object.

    Remote queue responses are untrusted; callers treat ``None`` as a
    contract breach rather than crashing on a parse error.
    """
    try:
        parsed = load_json_str(raw)
    except InvalidJsonError:
        return None
    if isinstance(parsed, dict):
        return parsed
    return None


def optional_str(obj: JSONObject, key: str) -> str | None:
    """Return a string field, or None when missing, null, or not a string."""
    value = obj.get(key)
    if isinstance(value, str):
        return value
    return None


def nested_url(obj: JSONObject, key: str) -> str | None:
    """Return ``obj[key]["url"]`` when it is a non-empty string."""
    inner = obj.get(key)
    if not isinstance(inner, dict):
        return None
    url = inner.get("url")
    if isinstance(url, str) and url.strip() != "":
        return url
    return None


__all__ = [
    "InvalidJsonError",
    "JSONObject",
    "JSONValue",
    "dump_json_str",
    "load_json_bytes",
    "load_json_object",
    "load_json_str",
    "nested_url",
    "optional_str",
]
