"""Health check endpoints."""
import time
from datetime import datetime, timezone

import redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.routes.root import APP_VERSION
from app.config.database import get_db
from app.config.redis import get_redis_client
from app.config.workflow import get_workflow_settings
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Use `/api/v1/health/detailed` for the claims store and session store status.
    """
    return HealthResponse(status="healthy", version=APP_VERSION)


@router.get("/health/detailed")
def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check including all dependencies.

    Returns:
        Health status for the API, the claims store (database) and the session store (Redis)
    """
    health_status = {
        "status": "healthy",
        "version": APP_VERSION,
        "auth_mode": get_workflow_settings().auth_mode.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {},
    }

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "response_time_ms": round((time.time() - start) * 1000, 2),
        }
    except SQLAlchemyError as e:
        health_status["status"] = "degraded"
        health_status["components"]["database"] = {"status": "unhealthy", "error": "unreachable"}
        logger.error("Database health check failed", error=str(e))

    try:
        start = time.time()
        get_redis_client().ping()
        health_status["components"]["redis"] = {
            "status": "healthy",
            "response_time_ms": round((time.time() - start) * 1000, 2),
        }
    except redis.RedisError as e:
        health_status["status"] = "degraded"
        health_status["components"]["redis"] = {"status": "unhealthy", "error": "unreachable"}
        logger.error("Redis health check failed", error=str(e))

    return health_status
