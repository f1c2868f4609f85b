"""
Off-chain result sources.

A result source turns a match id into the raw outcome payload (for chess
matches, the game's PGN). The payload is opaque to the daemon; it is only
ever hashed, so two sources that return byte-identical strings are
interchangeable.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@runtime_checkable
class ResultSource(Protocol):
    """Anything that can fetch a match's raw outcome payload."""

    async def fetch_raw(self, match_id: int) -> str:
        ...


class StubResultSource:
    """
    Deterministic placeholder source.

    Returns ``dummy-PGN-for-<id>`` so the full pipeline can run against a
    local chain before a real results API is wired up.
    """

    def __init__(self, template: str = "dummy-PGN-for-{match_id}") -> None:
        self._template = template

    async def fetch_raw(self, match_id: int) -> str:
        return self._template.format(match_id=match_id)


class HttpResultSource:
    """
    Fetches outcome payloads over HTTP.

    Issues ``GET <base_url>/<match_id>`` and returns the response body as
    text. Non-2xx responses and empty bodies raise, so the resolver's retry
    loop treats them as failed attempts.

    Usage:
        async with HttpResultSource("https://results.example/matches") as source:
            pgn = await source.fetch_raw(42)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            base_url: URL prefix; the match id is appended as a path segment
            timeout: Request timeout in seconds
            client: Optional shared httpx client (created if not provided)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpResultSource":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying client if this source created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def url_for(self, match_id: int) -> str:
        return f"{self._base_url}/{match_id}"

    async def fetch_raw(self, match_id: int) -> str:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

        resp = await self._client.get(self.url_for(match_id))
        resp.raise_for_status()

        payload = resp.text
        if not payload:
            raise ValueError(f"Empty outcome payload for match #{match_id}")
        return payload
