"""Unit test fixtures with mocked dependencies."""

import pytest
import structlog
from unittest.mock import MagicMock


@pytest.fixture
def mock_logger():
    """Provide a structlog logger double for probe tests."""
    return MagicMock(spec=structlog.stdlib.BoundLogger)
