"""
Health Check Endpoints.

Endpoints:
- /health: Liveness check (process running)
- /health/ready: Readiness check (database and Redis reachable)
- /health/detailed: Component status with application info
"""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from crm.backend.core.logging import get_logger
from crm.backend.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)


async def check_database() -> dict[str, Any]:
    """
    Check database connectivity.

    Returns:
        Dict with status, latency, and optional error message
    """
    from crm.backend.core.database import get_session_factory

    try:
        start = utc_now()
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}


async def check_redis() -> dict[str, Any]:
    """
    Check Redis connectivity through the shared cache client.

    Returns:
        Dict with status, latency, and optional error message
    """
    from crm.backend.core.cache import get_cache_client

    try:
        start = utc_now()
        await get_cache_client().ping()
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as e:
        logger.warning("Redis health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}


async def _run_checks(timeout: float) -> dict[str, dict[str, Any]]:
    db_result: dict[str, Any] = {"status": "error", "error": "check did not run"}
    redis_result: dict[str, Any] = {"status": "error", "error": "check did not run"}

    try:
        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as tg:
                db_task = tg.create_task(check_database())
                redis_task = tg.create_task(check_redis())
            db_result = db_task.result()
            redis_result = redis_task.result()
    except TimeoutError:
        logger.warning("Health checks timed out", extra={"timeout": timeout})

    return {"database": db_result, "redis": redis_result}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Liveness check.

    No dependency checks; this endpoint should always respond quickly.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check.

    Returns 503 if the database or Redis is not reachable.
    """
    from crm.backend.core.config import get_app_config

    checks = await _run_checks(get_app_config().application.timeouts.database)

    unhealthy = [name for name, check in checks.items() if check.get("status") != "healthy"]
    if unhealthy:
        logger.warning("Readiness check failed", extra={"unhealthy": unhealthy})
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "checks": checks,
                "timestamp": utc_now().isoformat(),
            },
        )

    return {"status": "healthy", "checks": checks, "timestamp": utc_now().isoformat()}


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Component-by-component status plus application identity."""
    from crm.backend.core.config import get_app_config

    app_settings = get_app_config().application
    checks = await _run_checks(app_settings.timeouts.database)
    healthy = all(check.get("status") == "healthy" for check in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "application": {
            "name": app_settings.name,
            "env": app_settings.environment,
            "debug": app_settings.debug,
            "version": app_settings.version,
        },
        "checks": checks,
        "timestamp": utc_now().isoformat(),
    }
