"""Utility functions."""

from src.utils.health import (
    HEALTH_CHECK_TIMEOUT,
    ComponentHealth,
    HealthStatus,
    check_database,
)

__all__ = [
    "HEALTH_CHECK_TIMEOUT",
    "ComponentHealth",
    "HealthStatus",
    "check_database",
]
