"""Test hooks for echoes_media - allows injecting test dependencies."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable


def _default_get_env(key: str) -> str | None:
    """Production implementation - reads from os.environ."""
    return os.getenv(key)


async def _default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


# Hook for environment variable access. Tests can override to provide fake values.
get_env: Callable[[str], str | None] = _default_get_env

# Hook for the inter-poll delay. Tests replace it so polling runs instantly.
sleep: Callable[[float], Awaitable[None]] = _default_sleep

__all__ = ["get_env", "sleep"]
