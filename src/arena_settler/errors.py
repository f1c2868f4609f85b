"""
Error taxonomy for the settlement daemon.

ConfigError is the only process-fatal error and is raised during startup.
Everything else is either transient (TransportError, logged by the watcher)
or scoped to a single match and recorded as that match's Failed state.
"""
from __future__ import annotations

from typing import Optional


class SettlerError(Exception):
    """Base class for all settlement daemon errors."""
    pass


class ConfigError(SettlerError):
    """Invalid or missing configuration. Prevents startup."""
    pass


class TransportError(SettlerError):
    """RPC transport failure (polling, chain queries, broadcast)."""

    def __init__(self, message: str, method: Optional[str] = None):
        super().__init__(message)
        self.method = method


class ResolutionError(SettlerError):
    """Outcome could not be fetched after all retry attempts."""

    def __init__(self, match_id: int, last_cause: Optional[BaseException], attempts: int = 0):
        super().__init__(
            f"Failed to resolve outcome for match #{match_id} "
            f"after {attempts} attempt(s): {last_cause}"
        )
        self.match_id = match_id
        self.last_cause = last_cause
        self.attempts = attempts


class SigningError(SettlerError):
    """A signer failed to produce its attestation. Not retried."""

    def __init__(self, match_id: int, signer: str, cause: BaseException):
        super().__init__(f"Signer {signer} failed to attest match #{match_id}: {cause}")
        self.match_id = match_id
        self.signer = signer
        self.cause = cause


class SubmissionError(SettlerError):
    """A contract call failed on every allowed attempt."""

    def __init__(
        self,
        function_name: str,
        match_id: Optional[int],
        last_cause: Optional[BaseException],
        attempts: int = 0,
    ):
        super().__init__(
            f"{function_name} for match #{match_id} failed "
            f"after {attempts} attempt(s): {last_cause}"
        )
        self.function_name = function_name
        self.match_id = match_id
        self.last_cause = last_cause
        self.attempts = attempts


class InvalidTransitionError(SettlerError):
    """A match state change that would move backwards or leave a terminal state."""
    pass
