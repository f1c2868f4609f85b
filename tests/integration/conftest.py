"""
Integration test fixtures.

These fixtures wire the real watcher, resolver, collector, submitter and
orchestrator to an in-memory ledger that enforces the wager contract's
rules: funded matches only, signatures checked in signer order against the
EIP-712 domain, and at most one pin and one settle per match.
"""

import pytest

from arena_settler.attestation import (
    AttestationCollector,
    Eip712Domain,
    SignerSet,
    winner_payload,
)
from arena_settler.core import MatchOrchestrator
from arena_settler.errors import TransportError
from arena_settler.execution import TransactionSubmitter
from arena_settler.ingestion import EventWatcher
from arena_settler.resolution import ResultResolver, StubResultSource

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration


KEY_A = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
KEY_B = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class FakeLedger:
    """
    In-memory stand-in for LedgerTransport plus the wager contract.

    ``fund()`` mines a block with a MatchFunded log. ``send_transaction``
    applies pinResult/settle with the contract's checks and raises
    TransportError where the contract would revert.
    """

    def __init__(self, verifier: AttestationCollector):
        self.contract_address = CONTRACT
        self.head = 100
        self.logs = []
        self.funded = set()
        self.pinned = {}
        self.settled = {}
        self.sent = []
        self.fail_next_sends = 0
        self.fail_polls = 0
        self._verifier = verifier

    def fund(self, match_id: int) -> dict:
        self.head += 1
        log = {
            "event": "MatchFunded",
            "args": {"id": match_id},
            "blockNumber": self.head,
            "transactionHash": "0x" + f"{self.head:064x}",
            "logIndex": 0,
        }
        self.logs.append(log)
        self.funded.add(match_id)
        return log

    async def get_block_number(self) -> int:
        if self.fail_polls:
            self.fail_polls -= 1
            raise TransportError("eth_blockNumber failed: connection reset")
        return self.head

    async def get_logs(self, event_name, from_block, to_block):
        return [
            log for log in self.logs
            if log["event"] == event_name and from_block <= log["blockNumber"] <= to_block
        ]

    def _check_sigs(self, match_id, payload, sigs):
        signers = self._verifier.signer_set.addresses
        if len(sigs) != len(signers):
            raise TransportError("execution reverted: bad signature count")
        for sig, expected in zip(sigs, signers):
            if self._verifier.recover_signer(match_id, payload, sig) != expected:
                raise TransportError("execution reverted: bad signature")

    async def send_transaction(self, function_name, args):
        self.sent.append((function_name, args))
        if self.fail_next_sends:
            self.fail_next_sends -= 1
            raise TransportError("eth_sendRawTransaction failed: nonce too low")

        if function_name == "pinResult":
            match_id, game_hash, sigs = args
            if match_id not in self.funded or match_id in self.pinned:
                raise TransportError("execution reverted: not pinnable")
            self._check_sigs(match_id, game_hash, sigs)
            self.pinned[match_id] = game_hash
        elif function_name == "settle":
            match_id, winner, sigs = args
            if match_id not in self.pinned or match_id in self.settled:
                raise TransportError("execution reverted: not settleable")
            self._check_sigs(match_id, winner_payload(winner), sigs)
            self.settled[match_id] = winner
        else:
            raise TransportError(f"unknown function {function_name}")

        self.head += 1
        return {
            "status": 1,
            "transactionHash": bytes.fromhex(f"{len(self.sent):064x}"),
            "blockNumber": self.head,
        }

    def calls(self, function_name):
        return [args for name, args in self.sent if name == function_name]


class FlakySource(StubResultSource):
    """Stub source that always fails for the given match ids."""

    def __init__(self, failing_ids=()):
        super().__init__()
        self.failing_ids = set(failing_ids)
        self.attempts = {}

    async def fetch_raw(self, match_id: int) -> str:
        self.attempts[match_id] = self.attempts.get(match_id, 0) + 1
        if match_id in self.failing_ids:
            raise ConnectionError(f"results API unavailable for #{match_id}")
        return await super().fetch_raw(match_id)


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def domain():
    return Eip712Domain(verifying_contract=CONTRACT, chain_id=31337)


@pytest.fixture
def signer_set():
    return SignerSet.from_private_keys([KEY_A, KEY_B])


@pytest.fixture
def collector(signer_set, domain):
    return AttestationCollector(signer_set=signer_set, domain=domain)


@pytest.fixture
def ledger(collector):
    """Ledger whose contract verifies against the daemon's own domain."""
    return FakeLedger(verifier=collector)


@pytest.fixture
def source():
    return FlakySource()


@pytest.fixture
def orchestrator(ledger, collector, source):
    return MatchOrchestrator(
        resolver=ResultResolver(source, retry_count=3),
        collector=collector,
        submitter=TransactionSubmitter(ledger, retry_count=3),
    )


@pytest.fixture
def watcher(ledger, orchestrator):
    errors = []
    w = EventWatcher(
        transport=ledger,
        on_event=orchestrator.handle_funding_event,
        on_error=errors.append,
        poll_interval=0.01,
        start_block=ledger.head + 1,
    )
    w.errors = errors
    return w
