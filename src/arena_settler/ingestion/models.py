"""
Data models for the ingestion layer.

FundingEvent is the trigger for a match's settlement pipeline. Because the
watcher re-scans a block range after a failed poll, the same event can be
delivered more than once; the orchestrator treats repeats as no-ops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class FundingEvent:
    """
    A decoded MatchFunded log.

    Attributes:
        match_id: The funded match's uint256 id
        block_number: Block the log was emitted in
        transaction_hash: 0x-prefixed hash of the emitting transaction
        log_index: Position of the log within its block
        args: All decoded event arguments
    """
    match_id: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.match_id < 0 or self.match_id >= 2 ** 256:
            raise ValueError(f"match_id must be an unsigned 256-bit integer, got {self.match_id}")

    @classmethod
    def from_log(cls, log: Mapping[str, Any]) -> "FundingEvent":
        """
        Build an event from a decoded log as returned by LedgerTransport.get_logs.

        Raises:
            ValueError: If the log has no ``id`` argument
        """
        args = dict(log.get("args") or {})
        if "id" not in args:
            raise ValueError(f"MatchFunded log without an id argument: {dict(log)}")

        return cls(
            match_id=int(args["id"]),
            block_number=log.get("blockNumber"),
            transaction_hash=log.get("transactionHash"),
            log_index=log.get("logIndex"),
            args=args,
        )
