"""
Ingestion Layer - Ledger access and funding event intake.

This module provides:
    - LedgerTransport: async web3 client for the wager contract
    - EventWatcher: poll-based MatchFunded watcher with a block cursor
    - FundingEvent: decoded MatchFunded log

Usage:
    from arena_settler.ingestion import EventWatcher, LedgerTransport

    transport = LedgerTransport(rpc_url, contract_address, sender_private_key)
    watcher = EventWatcher(transport, on_event=orchestrator.handle_funding_event)
    await watcher.start()
"""

from .abi import MATCH_FUNDED_EVENT, PIN_RESULT_FUNCTION, SETTLE_FUNCTION, WAGER_ABI
from .models import FundingEvent
from .transport import LedgerTransport
from .watcher import EventWatcher

__all__ = [
    # ABI
    "WAGER_ABI",
    "MATCH_FUNDED_EVENT",
    "PIN_RESULT_FUNCTION",
    "SETTLE_FUNCTION",
    # Models
    "FundingEvent",
    # Transport
    "LedgerTransport",
    # Watcher
    "EventWatcher",
]
