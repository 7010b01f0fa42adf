"""Storage liveness check."""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger(__name__)

HEALTH_CHECK_TIMEOUT = 1.0


class HealthStatus(str, Enum):
    """Health status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY


async def check_database(
    session_factory: async_sessionmaker[AsyncSession],
    timeout: float = HEALTH_CHECK_TIMEOUT,
) -> ComponentHealth:
    """Run ``SELECT 1`` within ``timeout`` seconds."""
    start = time.perf_counter()
    try:
        async with asyncio.timeout(timeout):
            async with session_factory() as db:
                result = await db.execute(text("SELECT 1"))
                result.scalar()
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        message = str(e)[:100] or e.__class__.__name__
        logger.error("database_health_check_failed", error=message)
        return ComponentHealth(
            name="database",
            status=HealthStatus.UNHEALTHY,
            message=message,
        )

    latency = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        name="database",
        status=HealthStatus.HEALTHY,
        latency_ms=round(latency, 2),
        message="Connected",
    )
