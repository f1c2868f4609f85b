"""
Arena Settler.

A settlement daemon for funded arena matches. It watches the wager contract
for MatchFunded events, resolves each match's outcome from an off-chain
source, collects EIP-712 attestations from the configured signer set, and
drives the match through pinResult and settle on-chain.
"""

__version__ = "0.1.0"
