"""
Signer identities.

A SignerSet is the ordered, immutable list of keys the daemon attests with.
Order matters: the contract checks signatures positionally and the first
signer is the designated winner identity.
"""
from __future__ import annotations

from typing import Iterator, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount


class SignerSet:
    """
    Ordered set of local signing accounts.

    Usage:
        signers = SignerSet.from_private_keys([key_a, key_b])
        signers.addresses   # ('0xf39F...', '0x7099...')
        signers.primary     # first account, the designated winner
    """

    def __init__(self, accounts: Sequence[LocalAccount]) -> None:
        if not accounts:
            raise ValueError("SignerSet needs at least one signer")

        addresses = [a.address for a in accounts]
        duplicates = {a for a in addresses if addresses.count(a) > 1}
        if duplicates:
            raise ValueError(f"Duplicate signer identities: {sorted(duplicates)}")

        self._accounts: tuple[LocalAccount, ...] = tuple(accounts)

    @classmethod
    def from_private_keys(cls, private_keys: Sequence[str]) -> "SignerSet":
        return cls([Account.from_key(key) for key in private_keys])

    @property
    def accounts(self) -> tuple[LocalAccount, ...]:
        return self._accounts

    @property
    def addresses(self) -> tuple[str, ...]:
        return tuple(a.address for a in self._accounts)

    @property
    def primary(self) -> LocalAccount:
        """The first signer, by convention the winner identity."""
        return self._accounts[0]

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[LocalAccount]:
        return iter(self._accounts)

    def __repr__(self) -> str:
        return f"SignerSet({list(self.addresses)})"
