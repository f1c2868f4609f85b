"""
Minimal ABI for the wager contract.

Only the pieces the daemon touches: the MatchFunded event it watches and the
two signature-gated calls it submits.
"""

MATCH_FUNDED_EVENT = "MatchFunded"
PIN_RESULT_FUNCTION = "pinResult"
SETTLE_FUNCTION = "settle"

WAGER_ABI = [
    {
        "type": "event",
        "name": "MatchFunded",
        "anonymous": False,
        "inputs": [
            {"name": "id", "type": "uint256", "indexed": True},
        ],
    },
    {
        "type": "function",
        "name": "pinResult",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "id", "type": "uint256"},
            {"name": "gameHash", "type": "bytes32"},
            {"name": "sigs", "type": "bytes[]"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "settle",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "id", "type": "uint256"},
            {"name": "winner", "type": "address"},
            {"name": "sigs", "type": "bytes[]"},
        ],
        "outputs": [],
    },
]
