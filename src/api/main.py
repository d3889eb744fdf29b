"""FastAPI application entry point."""
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import health, items, tags
from core.config import Settings, get_settings
from core.exceptions import (
    CatalogError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from core.rate_limit_config import RateLimitExceededError
from core.redis import RedisClient
from db.session import (
    TransactionalStore,
    create_engine_from_settings,
    create_session_factory,
    init_schema,
)

logger = logging.getLogger(__name__)

# Most specific first; CatalogError catches anything new
ERROR_STATUS: list[tuple[type[CatalogError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 503),
    (CatalogError, 500),
]


async def startup(app: FastAPI, settings: Settings) -> None:
    """Build the engine, store and Redis client and attach them to app.state."""
    engine = create_engine_from_settings(settings)
    if settings.create_schema_on_startup:
        await init_schema(engine)
    app.state.engine = engine
    app.state.store = TransactionalStore(create_session_factory(engine))

    redis_client = RedisClient(settings.redis_url, enabled=settings.redis_enabled)
    await redis_client.connect()
    app.state.redis = redis_client


async def shutdown(app: FastAPI) -> None:
    """Release what startup() acquired."""
    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.close()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:  # noqa: ARG001
    """Translate catalog errors into JSON error responses."""
    status_code = next(code for error_type, code in ERROR_STATUS if isinstance(exc, error_type))
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:  # noqa: ARG001
    """429 with Retry-After and rate limit headers."""
    result = exc.result
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
        headers={
            "Retry-After": str(result.retry_after),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset),
        },
    )


async def log_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Log method, path, status and duration of every request."""
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %s %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response


async def add_rate_limit_headers(
    request: Request, call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Copy rate limit info stored by check_rate_limit onto the response."""
    response = await call_next(request)
    info = getattr(request.state, "rate_limit_info", None)
    if info:
        response.headers["X-RateLimit-Limit"] = str(info["limit"])
        response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
        response.headers["X-RateLimit-Reset"] = str(info["reset"])
    return response


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Startup wiring runs in the lifespan."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await startup(app, settings)
        try:
            yield
        finally:
            await shutdown(app)

    app = FastAPI(
        title="Bookmarks Catalog API",
        description="A personal bookmark catalog with tagging.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)

    app.middleware("http")(add_rate_limit_headers)
    app.middleware("http")(log_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    app.include_router(health.router)
    app.include_router(items.router)
    app.include_router(tags.router)
    return app


app = create_app()
