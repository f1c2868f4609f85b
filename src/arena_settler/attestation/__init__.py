"""
Attestation Layer - EIP-712 signatures over match results.

This module provides:
    - SignerSet: ordered, immutable signer identities
    - AttestationCollector: one signature per signer over Data(id, payload)
    - SignatureBundle: ordered signatures plus the winner identity
    - Eip712Domain: domain of the verifying contract
    - winner_payload: address left-padded to the 32-byte settle payload
"""

from .collector import (
    AttestationCollector,
    Eip712Domain,
    SignatureBundle,
    winner_payload,
)
from .signers import SignerSet

__all__ = [
    "AttestationCollector",
    "Eip712Domain",
    "SignatureBundle",
    "SignerSet",
    "winner_payload",
]
