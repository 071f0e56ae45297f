from __future__ import annotations

import logging
from collections.abc import Generator

import pytest

from echoes_media import _test_hooks


@pytest.fixture(autouse=True)
def _restore_hooks() -> Generator[None, None, None]:
    """Restore all hooks after each test."""
    original_env = _test_hooks.get_env
    original_sleep = _test_hooks.sleep
    yield
    _test_hooks.get_env = original_env
    _test_hooks.sleep = original_sleep


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Generator[None, None, None]:
    """create_app() reconfigures the root logger; undo it between tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
