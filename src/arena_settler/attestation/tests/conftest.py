"""
Attestation layer test fixtures.

Uses the well-known anvil development keys so recovered addresses can be
checked against fixed values.
"""
import pytest

from arena_settler.attestation import AttestationCollector, Eip712Domain, SignerSet


KEY_A = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
KEY_B = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


# =============================================================================
# Signer Fixtures
# =============================================================================


@pytest.fixture
def signer_set():
    """Two-signer set: A (winner identity) then B."""
    return SignerSet.from_private_keys([KEY_A, KEY_B])


@pytest.fixture
def domain():
    """Local anvil domain."""
    return Eip712Domain(verifying_contract=CONTRACT, chain_id=31337)


@pytest.fixture
def collector(signer_set, domain):
    return AttestationCollector(signer_set=signer_set, domain=domain)


@pytest.fixture
def outcome_hash():
    """A fixed 32-byte payload."""
    return bytes(range(32))
