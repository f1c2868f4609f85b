"""
Ledger RPC transport for the wager contract.

Wraps web3's async client so the rest of the daemon only sees three calls:
the current block number, decoded event logs for a block range, and a
signed contract call that returns its receipt. Every failure surfaces as
TransportError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3

from arena_settler.errors import TransportError

from .abi import WAGER_ABI

logger = logging.getLogger(__name__)


class LedgerTransport:
    """
    Async web3 client bound to a single contract.

    Features:
        - Request timeout on every RPC call (default 30s)
        - Decoded, plain-dict event logs
        - Serialized transaction sending so concurrent match pipelines
          never race on the sender nonce

    Usage:
        transport = LedgerTransport(
            rpc_url="http://localhost:8545",
            contract_address="0x...",
            sender_private_key="0x...",
        )
        head = await transport.get_block_number()
        logs = await transport.get_logs("MatchFunded", head - 10, head)
        receipt = await transport.send_transaction("pinResult", [42, h, sigs])
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        sender_private_key: Optional[str] = None,
        timeout: float = 30.0,
        receipt_timeout: float = 120.0,
        abi: Optional[list] = None,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            rpc_url: JSON-RPC endpoint
            contract_address: Wager contract address
            sender_private_key: Key used to sign outgoing transactions
            timeout: Per-request timeout in seconds
            receipt_timeout: How long to wait for a transaction to be mined
            abi: Contract ABI (defaults to the wager ABI)
            web3: Pre-built AsyncWeb3 instance (tests inject one)
        """
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._receipt_timeout = receipt_timeout
        self._w3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
        )
        self._contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self._contract = self._w3.eth.contract(
            address=self._contract_address,
            abi=abi or WAGER_ABI,
        )
        self._account: Optional[LocalAccount] = (
            Account.from_key(sender_private_key) if sender_private_key else None
        )
        self._chain_id: Optional[int] = None
        self._send_lock = asyncio.Lock()

    @property
    def contract_address(self) -> str:
        """Checksum address of the bound contract."""
        return self._contract_address

    @property
    def sender_address(self) -> Optional[str]:
        """Address that signs outgoing transactions, if configured."""
        return self._account.address if self._account else None

    async def get_chain_id(self) -> int:
        """Chain id reported by the node (cached after the first call)."""
        if self._chain_id is None:
            try:
                self._chain_id = int(await self._w3.eth.chain_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise TransportError(f"eth_chainId failed: {e}", method="eth_chainId") from e
        return self._chain_id

    async def get_block_number(self) -> int:
        """Current head block number."""
        try:
            return int(await self._w3.eth.block_number)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(f"eth_blockNumber failed: {e}", method="eth_blockNumber") from e

    async def get_logs(
        self,
        event_name: str,
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        """
        Fetch decoded logs for ``event_name`` on the bound contract.

        Args:
            event_name: ABI event name, e.g. "MatchFunded"
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Logs in chain order as plain dicts with keys
            ``event``, ``args``, ``blockNumber``, ``transactionHash``, ``logIndex``
        """
        try:
            event = getattr(self._contract.events, event_name)
            raw_logs = await event.get_logs(from_block=from_block, to_block=to_block)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(
                f"eth_getLogs({event_name}, {from_block}-{to_block}) failed: {e}",
                method="eth_getLogs",
            ) from e

        logs = [self._normalize_log(log) for log in raw_logs]
        logs.sort(key=lambda log: (log["blockNumber"] or 0, log["logIndex"] or 0))
        return logs

    @staticmethod
    def _normalize_log(log: Any) -> dict[str, Any]:
        """Convert a web3 AttributeDict log into a plain dict."""
        tx_hash = log.get("transactionHash")
        return {
            "event": log.get("event"),
            "args": dict(log.get("args") or {}),
            "blockNumber": log.get("blockNumber"),
            "transactionHash": AsyncWeb3.to_hex(tx_hash) if tx_hash is not None else None,
            "logIndex": log.get("logIndex"),
        }

    async def send_transaction(self, function_name: str, args: Sequence[Any]) -> dict[str, Any]:
        """
        Sign, broadcast and wait for a contract call.

        Args:
            function_name: ABI function name, e.g. "pinResult"
            args: Positional call arguments

        Returns:
            The mined transaction receipt

        Raises:
            TransportError: If building, sending or mining fails, or the
                transaction reverted
        """
        if self._account is None:
            raise TransportError("No sender key configured for transactions")

        try:
            call = getattr(self._contract.functions, function_name)(*args)
        except Exception as e:
            raise TransportError(f"Cannot encode {function_name}: {e}") from e

        chain_id = await self.get_chain_id()

        async with self._send_lock:
            try:
                nonce = await self._w3.eth.get_transaction_count(
                    self._account.address, "pending"
                )
                tx = await call.build_transaction({
                    "from": self._account.address,
                    "nonce": nonce,
                    "chainId": chain_id,
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise TransportError(
                    f"{function_name} broadcast failed: {e}",
                    method="eth_sendRawTransaction",
                ) from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        logger.debug(f"{function_name} sent (tx: {tx_hex})")

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(
                f"{function_name} receipt wait failed (tx: {tx_hex}): {e}",
                method="eth_getTransactionReceipt",
            ) from e

        if receipt.get("status") != 1:
            raise TransportError(f"{function_name} reverted (tx: {tx_hex})")

        return dict(receipt)
