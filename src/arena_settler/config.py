"""
Daemon configuration.

Loaded from environment variables (optionally seeded from a .env file) and
validated once at startup. Any problem raises ConfigError and the process
exits before touching the chain.
"""
from __future__ import annotations

import os
import re
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from web3 import Web3

from arena_settler.errors import ConfigError

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def _normalize_private_key(value: str) -> str:
    value = value.strip()
    if not _PRIVATE_KEY_RE.match(value):
        raise ValueError("private keys must be 32-byte hex strings")
    if not value.startswith("0x"):
        value = "0x" + value
    return value.lower()


class SettlerConfig(BaseModel):
    """Complete daemon configuration."""

    model_config = ConfigDict(frozen=True)

    # Ledger
    rpc_url: str
    contract_address: str
    chain_id: int = Field(default=31337, gt=0)
    rpc_timeout_seconds: float = Field(default=30.0, gt=0)
    receipt_timeout_seconds: float = Field(default=120.0, gt=0)

    # Signers (order matters: the first signer is the winner identity)
    signer_private_keys: list[str] = Field(repr=False)
    submitter_private_key: Optional[str] = Field(default=None, repr=False)

    # EIP-712 domain
    eip712_name: str = "CheckmateArena"
    eip712_version: str = "1"

    # Retries
    fetch_retry_count: int = Field(default=3, ge=1)
    submit_retry_count: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=0.0, ge=0)

    # Watcher
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    start_block: Optional[int] = Field(default=None, ge=0)
    max_block_range: int = Field(default=2000, ge=1)

    # Result source (stub payloads when unset)
    result_source_url: Optional[str] = None

    # Run loop
    health_check_interval_seconds: float = Field(default=30.0, gt=0)

    @field_validator("rpc_url")
    @classmethod
    def _check_rpc_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC_URL must be an http(s) URL")
        return v

    @field_validator("contract_address")
    @classmethod
    def _check_contract_address(cls, v: str) -> str:
        v = v.strip()
        if not Web3.is_address(v):
            raise ValueError("CONTRACT_ADDRESS must be a 20-byte hex address")
        return Web3.to_checksum_address(v)

    @field_validator("signer_private_keys")
    @classmethod
    def _check_signer_keys(cls, v: list[str]) -> list[str]:
        keys = [_normalize_private_key(k) for k in v]
        if len(keys) < 2:
            raise ValueError(f"at least 2 signer keys are required, got {len(keys)}")
        if len(set(keys)) != len(keys):
            raise ValueError("signer keys must be distinct")
        return keys

    @field_validator("submitter_private_key")
    @classmethod
    def _check_submitter_key(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_private_key(v) if v else None

    @field_validator("result_source_url")
    @classmethod
    def _check_result_source_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("RESULT_SOURCE_URL must be an http(s) URL")
        return v or None

    @property
    def sender_private_key(self) -> str:
        """Key that signs transactions: the submitter key, else the first signer."""
        return self.submitter_private_key or self.signer_private_keys[0]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SettlerConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigError: If a required variable is missing or any value is invalid
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        if get("SIGNER_PRIVATE_KEYS"):
            signer_keys = [k for k in get("SIGNER_PRIVATE_KEYS").split(",") if k.strip()]
        else:
            # Legacy two-key form
            signer_keys = [k for k in (get("DAEMON_PRIVATE_KEY"), get("ATTESTOR_PK_B")) if k]

        raw = {
            "rpc_url": get("RPC_URL"),
            "contract_address": get("CONTRACT_ADDRESS"),
            "chain_id": get("CHAIN_ID"),
            "rpc_timeout_seconds": get("RPC_TIMEOUT_SECONDS"),
            "receipt_timeout_seconds": get("RECEIPT_TIMEOUT_SECONDS"),
            "signer_private_keys": signer_keys,
            "submitter_private_key": get("SUBMITTER_PRIVATE_KEY"),
            "eip712_name": get("EIP712_NAME"),
            "eip712_version": get("EIP712_VERSION"),
            "fetch_retry_count": get("FETCH_RETRY_COUNT"),
            "submit_retry_count": get("SUBMIT_RETRY_COUNT"),
            "retry_delay_seconds": get("RETRY_DELAY_SECONDS"),
            "poll_interval_seconds": get("POLL_INTERVAL_SECONDS"),
            "start_block": get("START_BLOCK"),
            "max_block_range": get("MAX_BLOCK_RANGE"),
            "result_source_url": get("RESULT_SOURCE_URL"),
            "health_check_interval_seconds": get("HEALTH_CHECK_INTERVAL_SECONDS"),
        }

        required = (("RPC_URL", "rpc_url"), ("CONTRACT_ADDRESS", "contract_address"))
        missing = [name for name, key in required if raw[key] is None]
        if missing:
            raise ConfigError(f"Missing required environment variable(s): {', '.join(missing)}")

        return cls.build({k: v for k, v in raw.items() if v is not None})

    @classmethod
    def build(cls, values: Mapping[str, object]) -> "SettlerConfig":
        """Validate ``values``, converting pydantic errors into ConfigError."""
        try:
            return cls(**values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigError(f"Invalid configuration: {problems}") from e
