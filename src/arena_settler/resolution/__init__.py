"""
Resolution Layer - Off-chain match outcomes.

This module provides:
    - ResultResolver: fetch-with-retry plus keccak-256 content hashing
    - ResultSource: protocol for outcome providers
    - StubResultSource: deterministic placeholder payloads
    - HttpResultSource: httpx-backed results API client
    - content_hash: the OutcomeHash function verified on-chain
"""

from .resolver import ResultResolver, content_hash
from .source import HttpResultSource, ResultSource, StubResultSource

__all__ = [
    "ResultResolver",
    "content_hash",
    "ResultSource",
    "StubResultSource",
    "HttpResultSource",
]
