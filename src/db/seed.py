"""
Reset the database and load sample items.

Usage: python -m db.seed
"""
import asyncio
import logging

from core.config import get_settings
from db.session import (
    TransactionalStore,
    create_engine_from_settings,
    create_session_factory,
    drop_schema,
    init_schema,
)
from services.item_repository import ItemRepository

logger = logging.getLogger(__name__)

SEED_ITEMS: list[tuple[str, str, list[str]]] = [
    ("Python Tutorial: Errors and Exceptions", "https://docs.python.org/3/tutorial/errors.html", ["python", "errors"]),  # noqa: E501
    ("SQLite Documentation", "https://www.sqlite.org/docs.html", ["database", "sqlite"]),
    ("React Query Overview", "https://tanstack.com/query/latest/docs/framework/react/overview", ["react", "data"]),  # noqa: E501
    ("Vite Guide", "https://vite.dev/guide/", ["frontend", "tooling"]),
    ("REST API Design", "https://restfulapi.net/", ["api", "design"]),
    ("asyncio: Coroutines and Tasks", "https://docs.python.org/3/library/asyncio-task.html", ["python", "concurrency"]),  # noqa: E501
    ("HTTP RFC 9110", "https://www.rfc-editor.org/rfc/rfc9110", ["http", "standards"]),
    ("MDN: HTTP CORS", "https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS", ["http", "cors"]),
    ("SQLite Query Planner", "https://www.sqlite.org/queryplanner.html", ["database", "performance"]),
    ("React Hooks Reference", "https://react.dev/reference/react", ["react", "hooks"]),
    ("Vite Environment Variables", "https://vite.dev/guide/env-and-mode.html", ["frontend", "config"]),
    ("SQL Style Guide", "https://www.sqlstyle.guide/", ["sql", "style"]),
]


async def seed_database(repository: ItemRepository) -> list[str]:
    """Create the sample items and return their ids."""
    return [
        await repository.create_item(title, url, tags) for title, url, tags in SEED_ITEMS
    ]


async def main() -> None:
    """Drop and recreate the schema, then seed it."""
    settings = get_settings()
    engine = create_engine_from_settings(settings)
    try:
        await drop_schema(engine)
        await init_schema(engine)
        repository = ItemRepository.from_store(TransactionalStore(create_session_factory(engine)))
        item_ids = await seed_database(repository)
        logger.info("seed_complete", extra={"items": len(item_ids)})
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level)
    asyncio.run(main())
