"""
Monitoring layer test fixtures.
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from arena_settler.core import OrchestratorStats


@pytest.fixture
def mock_transport():
    transport = MagicMock()
    transport.get_block_number = AsyncMock(return_value=1234)
    return transport


@pytest.fixture
def mock_watcher():
    """Running watcher that polled just now."""
    watcher = MagicMock()
    watcher.is_running = True
    watcher.last_poll_at = datetime.now(timezone.utc)
    watcher.poll_interval = 5.0
    watcher.consecutive_errors = 0
    watcher.cursor = 1234
    return watcher


@pytest.fixture
def mock_orchestrator():
    orchestrator = MagicMock()
    orchestrator.stats = OrchestratorStats(settled=3)
    orchestrator.in_flight = 1
    return orchestrator
