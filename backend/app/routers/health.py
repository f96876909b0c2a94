"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.database import engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight liveness check (no database round trip)."""
    return {
        "status": "ok",
        "service": "Kanvaro",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: 200 only when the database answers.

    Permission resolution reads role assignments from the database, so
    a service without it cannot authorize anything.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        database = f"error: {str(e)[:100]}"

    healthy = database == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": "Kanvaro",
            "checks": {"database": database},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
