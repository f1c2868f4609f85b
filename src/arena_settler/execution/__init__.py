"""
Execution Layer - On-chain state changes.

This module provides:
    - TransactionSubmitter: bounded-retry submission of pinResult and settle
"""

from .submitter import TransactionSubmitter

__all__ = [
    "TransactionSubmitter",
]
