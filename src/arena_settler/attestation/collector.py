"""
Attestation collector.

Every state change the daemon submits is authorized by one EIP-712 signature
per configured signer over the same ``Data(uint256 id, bytes32 payload)``
message. The domain must match the verifying contract exactly; a wrong name,
version, chain id or contract address invalidates every signature produced.

This is local aggregation over keys the process holds, not a distributed
signing protocol. Signers sign one after another and any single failure
aborts the whole bundle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from hexbytes import HexBytes
from web3 import Web3

from arena_settler.errors import SigningError

from .signers import SignerSet

logger = logging.getLogger(__name__)

DATA_TYPE = [
    {"name": "id", "type": "uint256"},
    {"name": "payload", "type": "bytes32"},
]

DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


@dataclass(frozen=True)
class Eip712Domain:
    """EIP-712 domain of the verifying contract."""

    verifying_contract: str
    chain_id: int = 31337
    name: str = "CheckmateArena"
    version: str = "1"

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": Web3.to_checksum_address(self.verifying_contract),
        }


@dataclass(frozen=True)
class SignatureBundle:
    """
    Signatures from every signer, in signer order, plus the winner identity.

    Attributes:
        signatures: One 65-byte signature per signer
        winner: Checksum address of the designated winner (first signer)
    """
    signatures: tuple[HexBytes, ...]
    winner: str

    def __len__(self) -> int:
        return len(self.signatures)

    def as_args(self) -> list[bytes]:
        """Signatures as the ``bytes[]`` contract argument."""
        return [bytes(sig) for sig in self.signatures]


def winner_payload(winner: str) -> HexBytes:
    """Left-pad a 20-byte address to the 32-byte settle payload."""
    address = HexBytes(Web3.to_checksum_address(winner))
    return HexBytes(address.rjust(32, b"\x00"))


def _as_payload(payload: Union[bytes, str]) -> HexBytes:
    value = HexBytes(payload)
    if len(value) != 32:
        raise ValueError(f"payload must be exactly 32 bytes, got {len(value)}")
    return value


class AttestationCollector:
    """
    Produces SignatureBundles from a SignerSet.

    Usage:
        collector = AttestationCollector(
            signer_set=SignerSet.from_private_keys(keys),
            domain=Eip712Domain(verifying_contract="0x...", chain_id=31337),
        )
        bundle = collector.attest(42, outcome_hash)
        bundle.signatures   # (sig_a, sig_b)
        bundle.winner       # signer A's address
    """

    def __init__(self, signer_set: SignerSet, domain: Eip712Domain) -> None:
        self._signers = signer_set
        self._domain = domain

    @property
    def signer_set(self) -> SignerSet:
        return self._signers

    @property
    def domain(self) -> Eip712Domain:
        return self._domain

    @property
    def quorum(self) -> int:
        """Number of signatures in every bundle."""
        return len(self._signers)

    def typed_message(self, match_id: int, payload: Union[bytes, str]) -> SignableMessage:
        """Encode the structured Data message for ``(match_id, payload)``."""
        return encode_typed_data(full_message={
            "types": {
                "EIP712Domain": DOMAIN_TYPE,
                "Data": DATA_TYPE,
            },
            "primaryType": "Data",
            "domain": self._domain.as_dict(),
            "message": {
                "id": int(match_id),
                "payload": bytes(_as_payload(payload)),
            },
        })

    def attest(self, match_id: int, payload: Union[bytes, str]) -> SignatureBundle:
        """
        Sign ``(match_id, payload)`` with every signer, in order.

        Args:
            match_id: The match being attested
            payload: 32-byte payload (OutcomeHash or WinnerPayload)

        Returns:
            SignatureBundle with one signature per signer

        Raises:
            SigningError: If the message cannot be built or any signer fails
        """
        try:
            message = self.typed_message(match_id, payload)
        except Exception as e:
            raise SigningError(match_id, "<message>", e) from e

        signatures = []
        for account in self._signers:
            try:
                signed = account.sign_message(message)
            except Exception as e:
                raise SigningError(match_id, account.address, e) from e
            signatures.append(HexBytes(signed.signature))

        logger.debug(f"Match #{match_id}: collected {len(signatures)} attestation(s)")

        return SignatureBundle(
            signatures=tuple(signatures),
            winner=self._signers.primary.address,
        )

    def recover_signer(
        self,
        match_id: int,
        payload: Union[bytes, str],
        signature: Union[bytes, str],
    ) -> str:
        """Address that produced ``signature`` over ``(match_id, payload)``."""
        message = self.typed_message(match_id, payload)
        return Account.recover_message(message, signature=HexBytes(signature))

    def verify_bundle(
        self,
        match_id: int,
        payload: Union[bytes, str],
        bundle: SignatureBundle,
    ) -> bool:
        """Whether every signature in ``bundle`` recovers to its signer, in order."""
        if len(bundle) != self.quorum:
            return False
        recovered = tuple(
            self.recover_signer(match_id, payload, sig) for sig in bundle.signatures
        )
        return recovered == self._signers.addresses
