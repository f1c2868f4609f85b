"""
Result resolver.

Reduces a match's raw outcome payload to the 32-byte content hash that the
wager contract verifies. The hash must be bit-exact with the on-chain side:
keccak-256 over the payload's UTF-8 bytes.
"""
from __future__ import annotations

import logging

from hexbytes import HexBytes
from web3 import Web3

from arena_settler.errors import ResolutionError
from arena_settler.retry import RetryExhausted, retry_async

from .source import ResultSource

logger = logging.getLogger(__name__)


def content_hash(raw: str) -> HexBytes:
    """keccak-256 of the UTF-8 encoded payload."""
    return HexBytes(Web3.keccak(text=raw))


class ResultResolver:
    """
    Resolves a match id to its OutcomeHash.

    Usage:
        resolver = ResultResolver(StubResultSource(), retry_count=3)
        outcome_hash = await resolver.resolve(42)
    """

    def __init__(
        self,
        source: ResultSource,
        retry_count: int = 3,
        retry_delay: float = 0.0,
    ) -> None:
        """
        Args:
            source: Where raw payloads come from
            retry_count: Maximum fetch attempts per resolve
            retry_delay: Base delay between attempts (exponential, 0 = immediate)
        """
        if retry_count < 1:
            raise ValueError(f"retry_count must be >= 1, got {retry_count}")
        self._source = source
        self._retry_count = retry_count
        self._retry_delay = retry_delay

    @property
    def retry_count(self) -> int:
        return self._retry_count

    async def fetch_raw(self, match_id: int) -> str:
        """
        Fetch the raw payload with bounded retry.

        Raises:
            ResolutionError: After ``retry_count`` failed attempts
        """
        try:
            return await retry_async(
                lambda: self._source.fetch_raw(match_id),
                attempts=self._retry_count,
                base_delay=self._retry_delay,
                description=f"Outcome fetch for match #{match_id}",
            )
        except RetryExhausted as e:
            raise ResolutionError(
                match_id, e.outcome.last_error, attempts=e.outcome.attempts
            ) from e.outcome.last_error

    async def resolve(self, match_id: int) -> HexBytes:
        """
        Fetch and hash the outcome for ``match_id``.

        Returns:
            32-byte OutcomeHash

        Raises:
            ResolutionError: If the payload could not be fetched
        """
        raw = await self.fetch_raw(match_id)
        return content_hash(raw)
