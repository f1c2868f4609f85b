"""
Ingestion layer test fixtures.

The watcher is tested against a mocked LedgerTransport; the transport itself
is tested against a mocked AsyncWeb3 instance, so no node is needed.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock


CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def make_log(match_id: int, block: int, index: int = 0) -> dict:
    """A decoded MatchFunded log as returned by LedgerTransport.get_logs."""
    return {
        "event": "MatchFunded",
        "args": {"id": match_id},
        "blockNumber": block,
        "transactionHash": "0x" + f"{block:02x}{index:02x}".rjust(64, "0"),
        "logIndex": index,
    }


# =============================================================================
# Transport Fixtures
# =============================================================================


@pytest.fixture
def mock_transport():
    """Mock LedgerTransport with an empty chain at block 100."""
    transport = MagicMock()
    transport.contract_address = CONTRACT
    transport.get_block_number = AsyncMock(return_value=100)
    transport.get_logs = AsyncMock(return_value=[])
    return transport


@pytest.fixture
def received():
    """List that collects dispatched events."""
    return []


@pytest.fixture
def on_event(received):
    """Async event callback that records each event."""
    async def callback(event):
        received.append(event)
    return callback


@pytest.fixture
def log_factory():
    return make_log
