"""
Execution layer test fixtures.

The submitter is tested against a mocked LedgerTransport.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from hexbytes import HexBytes


@pytest.fixture
def receipt():
    return {"status": 1, "transactionHash": HexBytes("0x" + "cd" * 32), "blockNumber": 5}


@pytest.fixture
def mock_transport(receipt):
    """Mock LedgerTransport whose transactions always succeed."""
    transport = MagicMock()
    transport.send_transaction = AsyncMock(return_value=receipt)
    return transport
