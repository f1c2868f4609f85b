"""
Core layer test fixtures.

Core tests verify orchestration logic, so the resolver, collector and
submitter are mocked.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from hexbytes import HexBytes

from arena_settler.attestation import SignatureBundle
from arena_settler.core import MatchOrchestrator
from arena_settler.ingestion import FundingEvent


WINNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OUTCOME_HASH = HexBytes("0x" + "aa" * 32)


# =============================================================================
# Component Mocks
# =============================================================================


@pytest.fixture
def mock_resolver():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=OUTCOME_HASH)
    return resolver


@pytest.fixture
def mock_collector():
    """Collector returning a fixed two-signature bundle per payload."""
    collector = MagicMock()

    def attest(match_id, payload):
        tag = bytes(HexBytes(payload))[-1:]
        return SignatureBundle(
            signatures=(HexBytes(b"\x01" * 64 + tag), HexBytes(b"\x02" * 64 + tag)),
            winner=WINNER,
        )

    collector.attest = MagicMock(side_effect=attest)
    return collector


@pytest.fixture
def mock_submitter():
    submitter = MagicMock()
    submitter.pin_result = AsyncMock(
        return_value={"status": 1, "transactionHash": HexBytes("0x" + "01" * 32)}
    )
    submitter.settle = AsyncMock(
        return_value={"status": 1, "transactionHash": HexBytes("0x" + "02" * 32)}
    )
    return submitter


@pytest.fixture
def orchestrator(mock_resolver, mock_collector, mock_submitter):
    return MatchOrchestrator(
        resolver=mock_resolver,
        collector=mock_collector,
        submitter=mock_submitter,
    )


@pytest.fixture
def make_event():
    def _make(match_id: int, block: int = 10) -> FundingEvent:
        return FundingEvent(match_id=match_id, block_number=block, log_index=0)
    return _make
