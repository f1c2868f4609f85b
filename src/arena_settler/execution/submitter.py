"""
Transaction submitter.

Pushes the two signature-gated state changes (pinResult, settle) to the
ledger with bounded retry. It does not check whether a call is redundant;
the contract rejects a second pin or settle for the same match, and such a
rejection simply counts as a failed attempt here.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

from hexbytes import HexBytes
from web3 import Web3

from arena_settler.errors import SubmissionError
from arena_settler.ingestion.abi import PIN_RESULT_FUNCTION, SETTLE_FUNCTION
from arena_settler.retry import RetryExhausted, retry_async

if TYPE_CHECKING:
    from arena_settler.ingestion.transport import LedgerTransport

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """
    Submits contract calls through a LedgerTransport.

    Usage:
        submitter = TransactionSubmitter(transport, retry_count=3)
        receipt = await submitter.pin_result(42, outcome_hash, bundle.as_args())
        receipt = await submitter.settle(42, bundle.winner, settle_bundle.as_args())
    """

    def __init__(
        self,
        transport: "LedgerTransport",
        retry_count: int = 3,
        retry_delay: float = 0.0,
    ) -> None:
        """
        Args:
            transport: Ledger transport used to sign and broadcast
            retry_count: Maximum attempts per submission
            retry_delay: Base delay between attempts (exponential, 0 = immediate)
        """
        if retry_count < 1:
            raise ValueError(f"retry_count must be >= 1, got {retry_count}")
        self._transport = transport
        self._retry_count = retry_count
        self._retry_delay = retry_delay

    @property
    def retry_count(self) -> int:
        return self._retry_count

    async def submit(
        self,
        function_name: str,
        args: Sequence[Any],
        match_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Submit ``function_name(*args)`` with bounded retry.

        Args:
            function_name: Contract function to call
            args: Positional arguments
            match_id: Match the call belongs to (for errors and logs)

        Returns:
            Transaction receipt

        Raises:
            SubmissionError: After ``retry_count`` failed attempts
        """
        label = f"{function_name} for match #{match_id}" if match_id is not None else function_name
        try:
            receipt = await retry_async(
                lambda: self._transport.send_transaction(function_name, list(args)),
                attempts=self._retry_count,
                base_delay=self._retry_delay,
                description=label,
            )
        except RetryExhausted as e:
            raise SubmissionError(
                function_name,
                match_id,
                e.outcome.last_error,
                attempts=e.outcome.attempts,
            ) from e.outcome.last_error

        tx_hash = receipt.get("transactionHash")
        logger.debug(
            f"{label} mined"
            + (f" (tx: {Web3.to_hex(tx_hash)})" if tx_hash is not None else "")
        )
        return receipt

    async def pin_result(
        self,
        match_id: int,
        outcome_hash: Union[bytes, str],
        signatures: Sequence[bytes],
    ) -> dict[str, Any]:
        """Submit ``pinResult(id, gameHash, sigs)``."""
        return await self.submit(
            PIN_RESULT_FUNCTION,
            [match_id, bytes(HexBytes(outcome_hash)), [bytes(s) for s in signatures]],
            match_id=match_id,
        )

    async def settle(
        self,
        match_id: int,
        winner: str,
        signatures: Sequence[bytes],
    ) -> dict[str, Any]:
        """Submit ``settle(id, winner, sigs)``."""
        return await self.submit(
            SETTLE_FUNCTION,
            [match_id, Web3.to_checksum_address(winner), [bytes(s) for s in signatures]],
            match_id=match_id,
        )
