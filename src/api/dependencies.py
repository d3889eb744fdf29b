"""FastAPI dependencies for injection."""
from fastapi import Depends, Request

from core.config import Settings
from core.rate_limit_config import RateLimitExceededError, RateLimitResult, get_operation_type
from core.rate_limiter import RedisRateLimiter
from core.redis import RedisClient
from db.session import TransactionalStore
from services.item_repository import ItemRepository


def get_store(request: Request) -> TransactionalStore:
    """The store built at startup (see api.main.startup)."""
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    """The settings the app was built with (see api.main.create_app)."""
    return request.app.state.settings


def get_redis_client(request: Request) -> RedisClient | None:
    """The Redis client built at startup, if any."""
    return getattr(request.app.state, "redis", None)


def get_item_repository(
    store: TransactionalStore = Depends(get_store),
) -> ItemRepository:
    """Item repository bound to the app's store."""
    return ItemRepository.from_store(store)


async def check_rate_limit(
    request: Request,
    redis_client: RedisClient | None = Depends(get_redis_client),
) -> RateLimitResult:
    """
    Dependency that enforces rate limits per client address.

    Stores the result in request.state for the headers middleware.
    Raises RateLimitExceededError for 429 responses (handled in api.main).
    """
    client_key = request.client.host if request.client else "unknown"
    operation_type = get_operation_type(request.method, request.url.path)

    result = await RedisRateLimiter(redis_client).check(client_key, operation_type)
    if not result.allowed:
        raise RateLimitExceededError(result)

    request.state.rate_limit_info = {
        "limit": result.limit,
        "remaining": result.remaining,
        "reset": result.reset,
    }
    return result


__all__ = [
    "check_rate_limit",
    "get_app_settings",
    "get_item_repository",
    "get_redis_client",
    "get_store",
]
