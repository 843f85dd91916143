import logging
from unittest.mock import AsyncMock

import pytest

from receptionist.models.reference import DEFAULT_REFERENCE_DATA
from receptionist.services.tool_dispatcher import ToolDispatcher


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def notifier():
    """A notifier whose sends always succeed."""
    mock = AsyncMock()
    mock.send.return_value = "SM123"
    return mock


@pytest.fixture
def dispatcher(notifier):
    return ToolDispatcher(DEFAULT_REFERENCE_DATA, notifier, tool_timeout=1.0)
