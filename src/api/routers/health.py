"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from api.dependencies import get_redis_client, get_store
from core.exceptions import CatalogError
from core.redis import RedisClient
from db.session import TransactionalStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    redis: str


async def check_redis_health(redis_client: RedisClient | None) -> str:
    """Check Redis connectivity. Returns 'connected' or 'unavailable'."""
    if redis_client is None:
        return "unavailable"
    if await redis_client.ping():
        return "connected"
    return "unavailable"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: TransactionalStore = Depends(get_store),
    redis_client: RedisClient | None = Depends(get_redis_client),
) -> HealthResponse:
    """
    Check application and database health.

    Redis only backs rate limiting, so the app reports healthy without it.
    """
    db_status = "healthy"
    try:
        await store.run_atomic(lambda session: session.execute(text("SELECT 1")))
    except CatalogError:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
        redis=await check_redis_health(redis_client),
    )
