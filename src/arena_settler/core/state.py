"""
Per-match lifecycle state.

    FUNDED -> HASH_RESOLVED -> PINNED -> SETTLED
    (any non-terminal state) -> FAILED

Transitions only move forward and SETTLED/FAILED are terminal. State lives in
memory for the life of the process; a restart forgets in-flight matches.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Optional

from hexbytes import HexBytes

from arena_settler.errors import InvalidTransitionError

if TYPE_CHECKING:
    from arena_settler.ingestion.models import FundingEvent


class MatchState(str, Enum):
    """Lifecycle states of a funded match."""

    FUNDED = "funded"
    HASH_RESOLVED = "hash_resolved"
    PINNED = "pinned"
    SETTLED = "settled"
    FAILED = "failed"


# Position in the happy path; FAILED sits outside it
_ORDER = {
    MatchState.FUNDED: 0,
    MatchState.HASH_RESOLVED: 1,
    MatchState.PINNED: 2,
    MatchState.SETTLED: 3,
}

TERMINAL_STATES = frozenset([MatchState.SETTLED, MatchState.FAILED])


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MatchRecord:
    """Everything the daemon knows about one match."""

    match_id: int
    state: MatchState = MatchState.FUNDED
    event: Optional["FundingEvent"] = None
    outcome_hash: Optional[HexBytes] = None
    winner: Optional[str] = None
    pin_tx: Optional[str] = None
    settle_tx: Optional[str] = None
    failure_stage: Optional[MatchState] = None
    failure_reason: Optional[str] = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def describe(self) -> str:
        if self.state == MatchState.FAILED:
            stage = self.failure_stage.value if self.failure_stage else "?"
            return f"failed(stage={stage}, reason={self.failure_reason})"
        return self.state.value


class MatchStateStore:
    """
    In-memory map of MatchId -> MatchRecord.

    Owned by the orchestrator. All access happens on the event loop thread,
    so per-key updates never interleave.
    """

    def __init__(self) -> None:
        self._records: dict[int, MatchRecord] = {}

    def __contains__(self, match_id: int) -> bool:
        return match_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MatchRecord]:
        return iter(list(self._records.values()))

    def get(self, match_id: int) -> Optional[MatchRecord]:
        return self._records.get(match_id)

    def create(self, match_id: int, event: Optional["FundingEvent"] = None) -> MatchRecord:
        """
        Register a newly funded match.

        Raises:
            InvalidTransitionError: If the match is already tracked
        """
        if match_id in self._records:
            raise InvalidTransitionError(
                f"Match #{match_id} already tracked ({self._records[match_id].describe()})"
            )
        record = MatchRecord(match_id=match_id, event=event)
        self._records[match_id] = record
        return record

    def _require(self, match_id: int) -> MatchRecord:
        record = self._records.get(match_id)
        if record is None:
            raise InvalidTransitionError(f"Match #{match_id} is not tracked")
        return record

    def advance(self, match_id: int, new_state: MatchState, **updates) -> MatchRecord:
        """
        Move a match forward along the happy path.

        Args:
            match_id: Match to update
            new_state: Target state (must be after the current one)
            **updates: MatchRecord fields to set alongside the transition

        Raises:
            InvalidTransitionError: On a backwards move, a repeat, or a move
                out of a terminal state
        """
        record = self._require(match_id)

        if new_state == MatchState.FAILED:
            raise InvalidTransitionError("Use fail() to record a failure")
        if record.is_terminal:
            raise InvalidTransitionError(
                f"Match #{match_id} is terminal ({record.describe()}), cannot move to {new_state.value}"
            )
        if _ORDER[new_state] <= _ORDER[record.state]:
            raise InvalidTransitionError(
                f"Match #{match_id} cannot move from {record.state.value} to {new_state.value}"
            )

        for name, value in updates.items():
            if not hasattr(record, name):
                raise AttributeError(f"MatchRecord has no field {name!r}")
            setattr(record, name, value)

        record.state = new_state
        record.updated_at = _utc_now()
        return record

    def fail(self, match_id: int, stage: MatchState, reason: str) -> MatchRecord:
        """
        Record a terminal failure.

        Args:
            match_id: Match that failed
            stage: The state the match was trying to reach
            reason: Error class and message

        Raises:
            InvalidTransitionError: If the match is already terminal
        """
        record = self._require(match_id)
        if record.is_terminal:
            raise InvalidTransitionError(
                f"Match #{match_id} is terminal ({record.describe()}), cannot fail"
            )

        record.state = MatchState.FAILED
        record.failure_stage = stage
        record.failure_reason = reason
        record.updated_at = _utc_now()
        return record

    def counts(self) -> dict[MatchState, int]:
        """Number of matches in each state."""
        counts = {state: 0 for state in MatchState}
        for record in self._records.values():
            counts[record.state] += 1
        return counts
