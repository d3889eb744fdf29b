"""Shared fixtures: a fresh SQLite database per test, services, and an HTTP client."""
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from api.main import create_app
from core.config import Settings
from db.session import (
    TransactionalStore,
    create_engine_from_settings,
    create_session_factory,
    init_schema,
)
from services.association_reconciler import AssociationReconciler
from services.item_repository import ItemRepository
from services.tag_registry import TagRegistry


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, Redis disabled."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        redis_enabled=False,
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Engine with the schema created."""
    engine = create_engine_from_settings(settings)
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine: AsyncEngine) -> TransactionalStore:
    """Transactional store over the test database."""
    return TransactionalStore(create_session_factory(engine))


@pytest.fixture
async def rival_stores(
    settings: Settings, engine: AsyncEngine,  # noqa: ARG001
) -> AsyncGenerator[tuple[TransactionalStore, TransactionalStore]]:
    """
    Two stores with separate engines on the same database file.

    Each behaves like a separate process. The busy timeout is short so a
    blocked writer gives up quickly.
    """
    fast = settings.model_copy(update={"sqlite_busy_timeout": 0.2})
    first, second = create_engine_from_settings(fast), create_engine_from_settings(fast)
    yield (
        TransactionalStore(create_session_factory(first)),
        TransactionalStore(create_session_factory(second)),
    )
    await first.dispose()
    await second.dispose()


@pytest.fixture
def registry(store: TransactionalStore) -> TagRegistry:
    """Tag registry."""
    return TagRegistry(store)


@pytest.fixture
def reconciler(store: TransactionalStore, registry: TagRegistry) -> AssociationReconciler:
    """Association reconciler sharing the registry."""
    return AssociationReconciler(store, registry)


@pytest.fixture
def repository(
    store: TransactionalStore,
    registry: TagRegistry,
    reconciler: AssociationReconciler,
) -> ItemRepository:
    """Item repository wired to the shared registry and reconciler."""
    return ItemRepository(store, registry, reconciler)


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Callable[[], datetime]:
    """
    Deterministic clock for item timestamps.

    Each call returns one second later than the previous one.
    """
    state = {"now": datetime(2026, 1, 1, 12, 0, tzinfo=UTC)}

    def _tick() -> datetime:
        state["now"] += timedelta(seconds=1)
        return state["now"]

    monkeypatch.setattr("services.item_repository.utcnow", _tick)
    return _tick


@pytest.fixture
def app(settings: Settings, store: TransactionalStore) -> FastAPI:
    """
    Application with the state startup() would build attached directly.

    ASGITransport does not run the lifespan. Redis is absent, so rate limiting
    fails open.
    """
    app = create_app(settings)
    app.state.store = store
    app.state.redis = None
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
