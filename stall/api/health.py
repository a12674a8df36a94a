"""
Stall Service — Health endpoint

Probes the database and Redis. Redis only carries replays and status
pushes, but without it checkout retries are no longer idempotent, so it
counts towards "healthy" as well.
"""
import asyncio
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from stall.core.config import get_settings
from stall.core.redis_client import get_redis
from stall.db.database import engine

settings = get_settings()
router = APIRouter(tags=["health"])


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    await get_redis().ping()


PROBES = {"database": _ping_database, "redis": _ping_redis}


async def _probe(check) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as exc:
        return f"error: {str(exc)[:100]}"
    return "ok"


@router.get("/health")
async def health_check():
    results = {name: await _probe(check) for name, check in PROBES.items()}
    healthy = all(r == "ok" for r in results.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": results,
        },
    )
