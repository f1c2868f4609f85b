"""
Health Checker for component health monitoring.

Monitors the RPC node, the event watcher's poll freshness, and the match
pipeline's failure count.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from arena_settler.core.orchestrator import MatchOrchestrator
    from arena_settler.ingestion.transport import LedgerTransport
    from arena_settler.ingestion.watcher import EventWatcher

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health check result for a single component."""

    component: str
    status: HealthStatus
    message: str
    latency_ms: Optional[float] = None


@dataclass
class AggregateHealth:
    """Overall system health."""

    status: HealthStatus
    components: List[ComponentHealth] = field(default_factory=list)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class HealthChecker:
    """
    Checks health of daemon components.

    Usage:
        checker = HealthChecker(transport, watcher, orchestrator)
        overall = await checker.check_all()
        if overall.status == HealthStatus.UNHEALTHY:
            ...
    """

    def __init__(
        self,
        transport: Optional["LedgerTransport"] = None,
        watcher: Optional["EventWatcher"] = None,
        orchestrator: Optional["MatchOrchestrator"] = None,
        poll_staleness_factor: float = 6.0,
    ) -> None:
        """
        Initialize the health checker.

        Args:
            transport: Ledger transport to probe
            watcher: Event watcher whose last poll time is checked
            orchestrator: Orchestrator whose failure count is reported
            poll_staleness_factor: Polls older than this many intervals are stale
        """
        self._transport = transport
        self._watcher = watcher
        self._orchestrator = orchestrator
        self._poll_staleness_factor = poll_staleness_factor

    async def check_rpc(self) -> ComponentHealth:
        """Probe the node with eth_blockNumber."""
        if self._transport is None:
            return ComponentHealth(
                component="rpc",
                status=HealthStatus.WARNING,
                message="No ledger transport configured",
            )

        start_time = time.time()
        try:
            head = await self._transport.get_block_number()
            latency_ms = (time.time() - start_time) * 1000
            return ComponentHealth(
                component="rpc",
                status=HealthStatus.HEALTHY,
                message=f"Node at block {head}",
                latency_ms=latency_ms,
            )
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            logger.error(f"RPC health check failed: {e}")
            return ComponentHealth(
                component="rpc",
                status=HealthStatus.UNHEALTHY,
                message=f"RPC error: {str(e)}",
                latency_ms=latency_ms,
            )

    async def check_watcher(self) -> ComponentHealth:
        """Check that the watcher is running and polled recently."""
        if self._watcher is None:
            return ComponentHealth(
                component="watcher",
                status=HealthStatus.WARNING,
                message="No event watcher configured",
            )

        if not self._watcher.is_running:
            return ComponentHealth(
                component="watcher",
                status=HealthStatus.UNHEALTHY,
                message="Event watcher is not running",
            )

        last_poll_at = self._watcher.last_poll_at
        if last_poll_at is None:
            return ComponentHealth(
                component="watcher",
                status=HealthStatus.DEGRADED,
                message="Event watcher has not completed a poll yet",
            )

        age_seconds = (datetime.now(timezone.utc) - last_poll_at).total_seconds()
        threshold = self._watcher.poll_interval * self._poll_staleness_factor
        if age_seconds > threshold:
            return ComponentHealth(
                component="watcher",
                status=HealthStatus.DEGRADED,
                message=(
                    f"Last successful poll {age_seconds:.0f}s ago "
                    f"({self._watcher.consecutive_errors} consecutive errors)"
                ),
            )

        if self._watcher.consecutive_errors > 0:
            return ComponentHealth(
                component="watcher",
                status=HealthStatus.DEGRADED,
                message=(
                    f"Last {self._watcher.consecutive_errors} poll(s) failed, "
                    f"cursor stuck at block {self._watcher.cursor}"
                ),
            )

        return ComponentHealth(
            component="watcher",
            status=HealthStatus.HEALTHY,
            message=f"Polling, cursor at block {self._watcher.cursor}",
        )

    async def check_pipeline(self) -> ComponentHealth:
        """Report failed matches; they need operator action."""
        if self._orchestrator is None:
            return ComponentHealth(
                component="pipeline",
                status=HealthStatus.WARNING,
                message="No orchestrator configured",
            )

        stats = self._orchestrator.stats
        if stats.failed:
            return ComponentHealth(
                component="pipeline",
                status=HealthStatus.WARNING,
                message=f"{stats.failed} match(es) failed and need manual action",
            )

        return ComponentHealth(
            component="pipeline",
            status=HealthStatus.HEALTHY,
            message=f"{self._orchestrator.in_flight} in flight, {stats.settled} settled",
        )

    async def check_all(self, timeout: float = 5.0) -> AggregateHealth:
        """
        Check all components with timeout.

        Args:
            timeout: Maximum time for all checks in seconds

        Returns:
            AggregateHealth with all component results
        """
        components = []

        checks = [
            ("rpc", self.check_rpc),
            ("watcher", self.check_watcher),
            ("pipeline", self.check_pipeline),
        ]

        for name, check_func in checks:
            try:
                result = await asyncio.wait_for(
                    check_func(),
                    timeout=timeout / len(checks),
                )
                components.append(result)
            except asyncio.TimeoutError:
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check timed out",
                ))
            except Exception as e:
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check failed: {str(e)}",
                ))

        return AggregateHealth(
            status=self._calculate_overall_status(components),
            components=components,
        )

    def _calculate_overall_status(
        self,
        components: List[ComponentHealth],
    ) -> HealthStatus:
        """Calculate overall status from component statuses."""
        statuses = [c.status for c in components]

        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY

        if HealthStatus.DEGRADED in statuses or HealthStatus.WARNING in statuses:
            return HealthStatus.DEGRADED

        return HealthStatus.HEALTHY
