# messenger/routes/health.py
"""
Health check endpoints with database pool and presence monitoring.
"""

import time

from fastapi import APIRouter, Depends

from messenger.config import settings
from messenger.db.pool import db_health_check
from messenger.realtime.hub import RealtimeHub, get_hub

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "messenger"}


@router.get("/readyz")
async def readyz(hub: RealtimeHub = Depends(get_hub)):
    """
    Readiness check: database pool plus in-memory presence counters.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool health check
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)

        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                }
            )

        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]

        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Realtime engine (in-process, always reachable if we got here)
    checks["realtime"] = {"ok": True, **await hub.stats()}

    # 3) Configuration checks
    config_issues = []
    if not settings.DATABASE_URL:
        config_issues.append("DATABASE_URL not set")
    if not settings.JWT_SECRET:
        config_issues.append("JWT_SECRET not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
