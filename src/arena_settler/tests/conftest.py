"""
Package-level test fixtures (config, retry, entry point).
"""
import pytest

from arena_settler.config import SettlerConfig


KEY_A = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
KEY_B = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def base_env():
    """Minimal valid environment using the legacy two-key form."""
    return {
        "RPC_URL": "http://127.0.0.1:8545",
        "CONTRACT_ADDRESS": CONTRACT,
        "DAEMON_PRIVATE_KEY": KEY_A,
        "ATTESTOR_PK_B": KEY_B,
    }


@pytest.fixture
def config():
    """Config with short intervals for fast daemon tests."""
    return SettlerConfig.build({
        "rpc_url": "http://127.0.0.1:8545",
        "contract_address": CONTRACT,
        "signer_private_keys": [KEY_A, KEY_B],
        "poll_interval_seconds": 0.01,
        "health_check_interval_seconds": 0.05,
    })
