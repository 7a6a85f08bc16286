"""Health check utilities for the thesis repository.

Storage health is judged from configuration only; health checks never call
the storage provider.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..infrastructure.storage.router import StorageRouter
from ..infrastructure.storage.storage_config import StorageBackendType, missing_credentials
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


def check_database_health(db: Session) -> ComponentHealth:
    """Check database connectivity with a trivial query."""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Database connection OK",
            latency_ms=round(latency_ms, 2)
        )
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database error: {type(e).__name__}"
        )


def check_storage_health(storage: StorageRouter) -> ComponentHealth:
    """Report the active backend and whether it can take uploads.

    - Missing credentials: UNHEALTHY, except Supabase, which still stores
      locally (DEGRADED)
    - Ephemeral local disk: DEGRADED
    """
    config = storage.config
    backend = config.backend_type.value
    missing = missing_credentials(config)

    if missing:
        status = HealthStatus.DEGRADED if config.backend_type == StorageBackendType.SUPABASE else HealthStatus.UNHEALTHY
        return ComponentHealth(
            status=status,
            message=f"Storage backend '{backend}' missing settings: {', '.join(missing)}",
        )

    if config.ephemeral:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message=f"Storage backend '{backend}' writes local files to ephemeral disk",
        )

    return ComponentHealth(status=HealthStatus.HEALTHY, message=f"Storage backend '{backend}' configured")


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component statuses."""
    if all(c.status == HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.HEALTHY

    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY

    return HealthStatus.DEGRADED
