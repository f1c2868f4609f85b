"""
Core Layer - Match lifecycle and orchestration.

This module provides:
    - MatchOrchestrator: per-match supervised pipeline (resolve -> pin -> settle)
    - OrchestratorStats: runtime counters
    - MatchState: FUNDED, HASH_RESOLVED, PINNED, SETTLED, FAILED
    - MatchRecord: everything known about one match
    - MatchStateStore: in-memory, forward-only state map

Data Flow:
    1. EventWatcher delivers a FundingEvent
    2. Orchestrator ignores it if the match id is already tracked
    3. Otherwise a pipeline task resolves, attests, pins, attests, settles
    4. Any failure ends that match in FAILED(stage, reason)
"""

from .orchestrator import MatchOrchestrator, OrchestratorStats
from .state import TERMINAL_STATES, MatchRecord, MatchState, MatchStateStore

__all__ = [
    # Orchestration
    "MatchOrchestrator",
    "OrchestratorStats",
    # State machine
    "MatchState",
    "MatchRecord",
    "MatchStateStore",
    "TERMINAL_STATES",
]
