"""
Liveness and readiness probes.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..cache import get_redis_client
from ..config import settings
from ..db import check_db_connection

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """Report ready only when both the database and Redis respond"""
    db_ok = await run_in_threadpool(check_db_connection)
    redis_ok = await run_in_threadpool(get_redis_client().ping)

    body = {
        "status": "ready" if db_ok and redis_ok else "not_ready",
        "database": "connected" if db_ok else "disconnected",
        "redis": "connected" if redis_ok else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not (db_ok and redis_ok):
        logger.warning("Readiness check failed: database=%s redis=%s", db_ok, redis_ok)
        return JSONResponse(status_code=503, content=body)
    return body
