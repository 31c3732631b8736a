from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from app.core.settings import settings
from app.db.session import engine
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
        return {"status": "ok"}
    except Exception as exc:
        logger.warning("Redis health check failed: %s", exc)
        return {"status": "error", "error": str(exc)}


async def _run_checks() -> tuple[dict[str, dict[str, Any]], bool]:
    checks = {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await _check_db(),
        "redis": await _check_redis(),
    }
    ready = all(check.get("status") == "ok" for check in checks.values())
    return checks, ready


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks, ready = await _run_checks()
    return {
        "status": "ok" if ready else "degraded",
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["service"] = "deals"
    return payload
