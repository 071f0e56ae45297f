"""Client for queue-style media generation jobs (video, avatar, 3D)."""

from __future__ import annotations

from .catalog import CATALOG, get_descriptor, list_kinds
from .client import QueuedJobClient
from .descriptors import JobDescriptor, MalformedResultError
from .errors import AppError, ErrorCode, JobErrorCode
from .settings import QueueSettings, load_settings
from .submission import JobHandle
from .types import (
    JobFailure,
    JobOutcome,
    JobSucceeded,
    StatusCheck,
    StatusSnapshot,
)

__all__ = [
    "CATALOG",
    "AppError",
    "ErrorCode",
    "JobDescriptor",
    "JobErrorCode",
    "JobFailure",
    "JobHandle",
    "JobOutcome",
    "JobSucceeded",
    "MalformedResultError",
    "QueueSettings",
    "QueuedJobClient",
    "StatusCheck",
    "StatusSnapshot",
    "get_descriptor",
    "list_kinds",
    "load_settings",
]
