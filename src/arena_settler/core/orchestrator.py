"""
MatchOrchestrator - per-match settlement state machine.

Each funded match runs as its own supervised asyncio task:

    1. Resolver fetches the outcome and hashes it        (FUNDED -> HASH_RESOLVED)
    2. Collector attests the hash, submitter pins it      (-> PINNED)
    3. Collector attests the winner payload, submitter
       settles with the winner from step 2's bundle       (-> SETTLED)

Any error ends the match in FAILED(stage, reason). Failures stay inside the
match's task: the watcher loop and other matches never see them.

The orchestrator is the authority on idempotency. A funding event for a
match id it already tracks, whatever that match's state, is ignored.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from web3 import Web3

from arena_settler.attestation.collector import winner_payload
from arena_settler.errors import ResolutionError, SigningError, SubmissionError

from .state import MatchRecord, MatchState, MatchStateStore

if TYPE_CHECKING:
    from arena_settler.attestation.collector import AttestationCollector
    from arena_settler.execution.submitter import TransactionSubmitter
    from arena_settler.ingestion.models import FundingEvent
    from arena_settler.resolution.resolver import ResultResolver

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorStats:
    """Runtime counters."""

    events_received: int = 0
    duplicates_ignored: int = 0
    matches_started: int = 0
    hashes_resolved: int = 0
    pinned: int = 0
    settled: int = 0
    failed: int = 0


def _tx_hex(receipt: Optional[dict[str, Any]]) -> Optional[str]:
    if not receipt or receipt.get("transactionHash") is None:
        return None
    return Web3.to_hex(receipt["transactionHash"])


class MatchOrchestrator:
    """
    Drives funded matches through pin and settle.

    Usage:
        orchestrator = MatchOrchestrator(
            resolver=resolver,
            collector=collector,
            submitter=submitter,
        )
        watcher = EventWatcher(transport, on_event=orchestrator.handle_funding_event)
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        resolver: "ResultResolver",
        collector: "AttestationCollector",
        submitter: "TransactionSubmitter",
        store: Optional[MatchStateStore] = None,
    ) -> None:
        self._resolver = resolver
        self._collector = collector
        self._submitter = submitter
        self._store = store or MatchStateStore()
        self._stats = OrchestratorStats()
        self._tasks: dict[int, asyncio.Task] = {}
        self._stopping = False

    @property
    def store(self) -> MatchStateStore:
        return self._store

    @property
    def stats(self) -> OrchestratorStats:
        return self._stats

    @property
    def in_flight(self) -> int:
        """Number of match pipelines currently running."""
        return len(self._tasks)

    def get_state(self, match_id: int) -> Optional[MatchState]:
        record = self._store.get(match_id)
        return record.state if record else None

    async def handle_funding_event(self, event: "FundingEvent") -> Optional[asyncio.Task]:
        """
        Start the settlement pipeline for a newly funded match.

        Returns immediately; the pipeline runs as a background task.

        Returns:
            The pipeline task, or None if the event was ignored
        """
        self._stats.events_received += 1
        match_id = event.match_id

        existing = self._store.get(match_id)
        if existing is not None:
            self._stats.duplicates_ignored += 1
            logger.debug(
                f"Match #{match_id}: repeat funding event ignored ({existing.describe()})"
            )
            return None

        if self._stopping:
            logger.warning(f"Match #{match_id}: funding event dropped, shutdown in progress")
            return None

        self._store.create(match_id, event)
        self._stats.matches_started += 1
        logger.info(
            f"Match #{match_id}: funded"
            + (f" (block {event.block_number})" if event.block_number is not None else "")
        )

        task = asyncio.create_task(self._run_pipeline(match_id), name=f"match-{match_id}")
        self._tasks[match_id] = task
        task.add_done_callback(lambda t, mid=match_id: self._on_task_done(mid, t))
        return task

    def _on_task_done(self, match_id: int, task: asyncio.Task) -> None:
        self._tasks.pop(match_id, None)

        if task.cancelled():
            record = self._store.get(match_id)
            if record is not None and not record.is_terminal:
                logger.warning(
                    f"Match #{match_id}: pipeline cancelled at {record.state.value}"
                )
            return

        error = task.exception()
        if error is not None:
            # _run_pipeline records its own failures; this is a last resort
            logger.error(f"Match #{match_id}: pipeline crashed: {error!r}")
            record = self._store.get(match_id)
            if record is not None and not record.is_terminal:
                self._store.fail(match_id, record.state, f"{type(error).__name__}: {error}")
                self._stats.failed += 1

    async def _run_pipeline(self, match_id: int) -> MatchRecord:
        stage = MatchState.HASH_RESOLVED
        try:
            outcome_hash = await self._resolver.resolve(match_id)
            self._store.advance(match_id, MatchState.HASH_RESOLVED, outcome_hash=outcome_hash)
            self._stats.hashes_resolved += 1
            logger.info(f"Match #{match_id}: outcome hash {Web3.to_hex(outcome_hash)}")

            stage = MatchState.PINNED
            pin_bundle = self._collector.attest(match_id, outcome_hash)
            pin_receipt = await self._submitter.pin_result(
                match_id, outcome_hash, pin_bundle.as_args()
            )
            self._store.advance(
                match_id,
                MatchState.PINNED,
                winner=pin_bundle.winner,
                pin_tx=_tx_hex(pin_receipt),
            )
            self._stats.pinned += 1
            logger.info(f"Match #{match_id}: pinned")

            # Settle with the winner determined alongside the pinned result
            stage = MatchState.SETTLED
            winner = pin_bundle.winner
            settle_bundle = self._collector.attest(match_id, winner_payload(winner))
            settle_receipt = await self._submitter.settle(
                match_id, winner, settle_bundle.as_args()
            )
            record = self._store.advance(
                match_id,
                MatchState.SETTLED,
                settle_tx=_tx_hex(settle_receipt),
            )
            self._stats.settled += 1
            logger.info(f"Match #{match_id}: settled (winner {winner})")
            return record

        except asyncio.CancelledError:
            raise
        except (ResolutionError, SigningError, SubmissionError) as e:
            return self._record_failure(match_id, stage, e)
        except Exception as e:
            logger.exception(f"Match #{match_id}: unexpected error at {stage.value}")
            return self._record_failure(match_id, stage, e)

    def _record_failure(self, match_id: int, stage: MatchState, error: Exception) -> MatchRecord:
        reason = f"{type(error).__name__}: {error}"
        record = self._store.fail(match_id, stage, reason)
        self._stats.failed += 1
        logger.error(f"Match #{match_id}: failed at {stage.value}: {reason}")
        return record

    async def wait_idle(self) -> None:
        """Wait until no match pipeline is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def stop(self) -> None:
        """Stop accepting events and cancel in-flight pipelines."""
        self._stopping = True
        tasks = list(self._tasks.values())
        if not tasks:
            return

        logger.info(f"Cancelling {len(tasks)} in-flight match pipeline(s)...")
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
