"""
Tests for HealthChecker.
"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from arena_settler.core import OrchestratorStats
from arena_settler.errors import TransportError
from arena_settler.ingestion import EventWatcher
from arena_settler.monitoring import HealthChecker, HealthStatus


# =============================================================================
# RPC Check Tests
# =============================================================================


class TestCheckRpc:
    """Tests for check_rpc()."""

    @pytest.mark.asyncio
    async def test_healthy(self, mock_transport):
        result = await HealthChecker(transport=mock_transport).check_rpc()

        assert result.status == HealthStatus.HEALTHY
        assert "1234" in result.message
        assert result.latency_ms is not None

    @pytest.mark.asyncio
    async def test_unhealthy_on_error(self, mock_transport):
        mock_transport.get_block_number.side_effect = TransportError("refused")

        result = await HealthChecker(transport=mock_transport).check_rpc()

        assert result.status == HealthStatus.UNHEALTHY
        assert "refused" in result.message

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await HealthChecker().check_rpc()
        assert result.status == HealthStatus.WARNING


# =============================================================================
# Watcher Check Tests
# =============================================================================


class TestCheckWatcher:
    """Tests for check_watcher()."""

    @pytest.mark.asyncio
    async def test_healthy(self, mock_watcher):
        result = await HealthChecker(watcher=mock_watcher).check_watcher()

        assert result.status == HealthStatus.HEALTHY
        assert "1234" in result.message

    @pytest.mark.asyncio
    async def test_not_running(self, mock_watcher):
        mock_watcher.is_running = False

        result = await HealthChecker(watcher=mock_watcher).check_watcher()

        assert result.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_no_poll_yet(self, mock_watcher):
        mock_watcher.last_poll_at = None

        result = await HealthChecker(watcher=mock_watcher).check_watcher()

        assert result.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_stale_poll(self, mock_watcher):
        mock_watcher.last_poll_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        mock_watcher.consecutive_errors = 4

        result = await HealthChecker(watcher=mock_watcher).check_watcher()

        assert result.status == HealthStatus.DEGRADED
        assert "4 consecutive errors" in result.message

    @pytest.mark.asyncio
    async def test_recent_poll_with_errors_degraded(self, mock_watcher):
        mock_watcher.consecutive_errors = 2

        result = await HealthChecker(watcher=mock_watcher).check_watcher()

        assert result.status == HealthStatus.DEGRADED
        assert "2 poll(s) failed" in result.message

    @pytest.mark.asyncio
    async def test_failing_get_logs_not_healthy(self):
        """A watcher that reaches the head but cannot fetch logs is degraded."""
        transport = MagicMock()
        transport.get_block_number = AsyncMock(return_value=100)
        transport.get_logs = AsyncMock(side_effect=TransportError("range too large"))
        watcher = EventWatcher(transport, lambda event: None)

        await watcher.poll_once()
        anchored_at = watcher.last_poll_at
        transport.get_block_number.return_value = 105
        watcher._running = True

        for _ in range(5):
            with pytest.raises(TransportError):
                await watcher.poll_once()
            watcher.consecutive_errors += 1

        assert watcher.last_poll_at == anchored_at
        assert watcher.cursor == 100

        result = await HealthChecker(watcher=watcher).check_watcher()

        assert result.status == HealthStatus.DEGRADED
        assert "5 poll(s) failed" in result.message


# =============================================================================
# Pipeline Check Tests
# =============================================================================


class TestCheckPipeline:
    """Tests for check_pipeline()."""

    @pytest.mark.asyncio
    async def test_healthy(self, mock_orchestrator):
        result = await HealthChecker(orchestrator=mock_orchestrator).check_pipeline()

        assert result.status == HealthStatus.HEALTHY
        assert "3 settled" in result.message

    @pytest.mark.asyncio
    async def test_failed_matches_warn(self, mock_orchestrator):
        mock_orchestrator.stats = OrchestratorStats(failed=2)

        result = await HealthChecker(orchestrator=mock_orchestrator).check_pipeline()

        assert result.status == HealthStatus.WARNING
        assert "2 match(es) failed" in result.message


# =============================================================================
# Aggregate Tests
# =============================================================================


class TestCheckAll:
    """Tests for check_all()."""

    @pytest.mark.asyncio
    async def test_all_healthy(self, mock_transport, mock_watcher, mock_orchestrator):
        checker = HealthChecker(mock_transport, mock_watcher, mock_orchestrator)

        health = await checker.check_all()

        assert health.status == HealthStatus.HEALTHY
        assert [c.component for c in health.components] == ["rpc", "watcher", "pipeline"]

    @pytest.mark.asyncio
    async def test_unhealthy_wins(self, mock_transport, mock_watcher, mock_orchestrator):
        mock_transport.get_block_number.side_effect = TransportError("down")
        checker = HealthChecker(mock_transport, mock_watcher, mock_orchestrator)

        health = await checker.check_all()

        assert health.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_warning_degrades(self, mock_transport, mock_watcher, mock_orchestrator):
        mock_orchestrator.stats = OrchestratorStats(failed=1)
        checker = HealthChecker(mock_transport, mock_watcher, mock_orchestrator)

        health = await checker.check_all()

        assert health.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_slow_check_times_out(self, mock_transport, mock_watcher, mock_orchestrator):
        async def slow():
            await asyncio.sleep(10)

        mock_transport.get_block_number = AsyncMock(side_effect=slow)
        checker = HealthChecker(mock_transport, mock_watcher, mock_orchestrator)

        health = await checker.check_all(timeout=0.3)

        rpc = health.components[0]
        assert rpc.status == HealthStatus.UNHEALTHY
        assert "timed out" in rpc.message
