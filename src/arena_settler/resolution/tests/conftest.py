"""
Resolution layer test fixtures.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def flaky_source():
    """
    Source that fails a configurable number of times before succeeding.

    Set ``flaky_source.failures`` before use.
    """
    source = MagicMock()
    source.failures = 0
    source.calls = 0

    async def fetch_raw(match_id):
        source.calls += 1
        if source.calls <= source.failures:
            raise ConnectionError(f"attempt {source.calls} failed")
        return f"dummy-PGN-for-{match_id}"

    source.fetch_raw = AsyncMock(side_effect=fetch_raw)
    return source
