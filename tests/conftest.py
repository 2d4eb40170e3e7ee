# tests/conftest.py

"""Shared pytest fixtures for all crawler tests."""

from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from src.crawler.cancellation import StopToken


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[MagicMock, None, None]:
    """Make StopToken waits return instantly so backoff loops run fast.

    The patched wait still reports a pending stop request.
    """
    with patch.object(
        StopToken,
        "sleep",
        autospec=True,
        side_effect=lambda token, seconds: token.stop_requested,
    ) as mocked:
        yield mocked
