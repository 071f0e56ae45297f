"""Upload ``data:`` URIs to provider storage so queue jobs can fetch them by URL."""

from __future__ import annotations

import base64
import binascii

from echoes_media.errors import AppError, ErrorCode, JobErrorCode
from echoes_media.http_client import HttpxAsyncClient, is_success, transport_error_type
from echoes_media.json_utils import load_json_object, optional_str
from echoes_media.logging import get_logger

_logger = get_logger(__name__)


def is_data_uri(value: str) -> bool:
    return value.startswith("data:")


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into its MIME type and raw bytes."""
    header, sep, encoded = data_uri.partition(",")
    if sep == "" or not header.startswith("data:"):
        raise AppError(ErrorCode.INVALID_INPUT, "Malformed data URI", 400)
    meta = header[len("data:") :].split(";")
    if "base64" not in meta[1:]:
        raise AppError(ErrorCode.INVALID_INPUT, "Data URI must be base64 encoded", 400)
    mime = meta[0].strip() or "application/octet-stream"
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AppError(
            ErrorCode.INVALID_INPUT, "Data URI payload is not valid base64", 400
        ) from exc
    if raw == b"":
        raise AppError(ErrorCode.INVALID_INPUT, "Data URI payload is empty", 400)
    return mime, raw


async def upload_data_uri(
    client: HttpxAsyncClient,
    upload_url: str,
    data_uri: str,
    api_key: str,
) -> str:
    """Return a hosted URL for ``data_uri``; plain URLs pass through unchanged."""
    if not is_data_uri(data_uri):
        return data_uri
    mime, raw = decode_data_uri(data_uri)
    headers = {"Authorization": f"Key {api_key}", "Content-Type": mime}
    try:
        resp = await client.post(upload_url, headers=headers, content=raw)
    except transport_error_type() as exc:
        raise AppError(
            JobErrorCode.UPLOAD_FAILED, f"Storage upload failed: {type(exc).__name__}"
        ) from exc

    status = int(resp.status_code)
    if status == 401:
        raise AppError(
            JobErrorCode.INVALID_CREDENTIAL,
            "Authentication failed. Please check your Fal.ai API key.",
        )
    if not is_success(resp):
        _logger.warning("storage_upload_rejected", extra={"http_status": status})
        raise AppError(JobErrorCode.UPLOAD_FAILED, f"Storage upload failed. Status: {status}")

    body = load_json_object(resp.text)
    url = optional_str(body, "url") if body is not None else None
    if url is None or url.strip() == "":
        raise AppError(JobErrorCode.PROTOCOL_VIOLATION, "Storage upload returned no url")
    _logger.info("storage_uploaded", extra={"content_type": mime, "size_bytes": len(raw)})
    return url


__all__ = ["decode_data_uri", "is_data_uri", "upload_data_uri"]
