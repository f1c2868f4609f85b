"""
Integration tests for the settlement daemon.

These tests run the real pipeline components together against an
in-memory ledger; no node is required.
"""
