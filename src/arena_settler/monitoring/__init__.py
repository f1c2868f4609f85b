"""
Monitoring Layer - Health checks for the settlement daemon.

This module provides:
    - HealthChecker: RPC, watcher and pipeline checks with timeouts
    - HealthStatus: Health status enum (HEALTHY, DEGRADED, UNHEALTHY, WARNING)
    - ComponentHealth: Health check result for a single component
    - AggregateHealth: Overall system health aggregation

Visibility is log-only: the daemon's run loop logs unhealthy components and
never halts or escalates on its own.
"""

from .health_checker import (
    AggregateHealth,
    ComponentHealth,
    HealthChecker,
    HealthStatus,
)

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "ComponentHealth",
    "AggregateHealth",
]
