"""Get-or-create registry for tag names, plus orphan cleanup."""
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConflictError, ValidationError
from db.session import TransactionalStore, is_lock_contention
from models.tag import Tag, items_tags
from schemas.tag import TagResponse

logger = logging.getLogger(__name__)


class TagRegistry:
    """
    Resolves tag names to stable ids, creating tags on first use.

    Methods ending in `_in` run inside a caller's transaction scope; the others
    open their own scope on the injected store.
    """

    def __init__(self, store: TransactionalStore) -> None:
        self.store = store

    async def resolve(self, name: str) -> int:
        """Resolve `name` to a tag id in a scope of its own."""
        return await self.store.run_atomic(lambda session: self.resolve_in(session, name))

    async def resolve_in(self, session: AsyncSession, name: str) -> int:
        """
        Return the id of the tag called `name`, inserting it on a miss.

        The insert is optimistic: if another transaction created the same name
        first, the unique constraint rejects ours and ConflictError is raised.
        On SQLite a concurrent writer holding the database lock past the busy
        timeout is reported the same way.
        The enclosing scope is then rolled back by the store.

        Raises:
            ValidationError: If the name is empty.
            ConflictError: If the name was created concurrently.
        """
        if not name:
            raise ValidationError("tag name is required")

        tag_id = await self._find_id(session, name)
        if tag_id is not None:
            return tag_id

        tag = Tag(name=name)
        session.add(tag)
        try:
            await session.flush()
        except IntegrityError as e:
            logger.warning("tag_create_conflict", extra={"tag_name": name})
            raise ConflictError(f"Tag '{name}' was created by a concurrent request") from e
        except OperationalError as e:
            # SQLite: the other writer still holds the lock, so the insert never
            # reaches the unique constraint
            if not is_lock_contention(e):
                raise
            logger.warning("tag_create_conflict", extra={"tag_name": name})
            raise ConflictError(f"Tag '{name}' is being written by a concurrent request") from e

        logger.info("tag_created", extra={"tag_id": tag.id, "tag_name": name})
        return tag.id

    async def _find_id(self, session: AsyncSession, name: str) -> int | None:
        return await session.scalar(select(Tag.id).where(Tag.name == name))

    async def get_tag_in(self, session: AsyncSession, tag_id: int) -> TagResponse | None:
        """Get a tag by id, or None."""
        row = (
            await session.execute(select(Tag.id, Tag.name).where(Tag.id == tag_id))
        ).one_or_none()
        return TagResponse(id=row.id, name=row.name) if row else None

    async def delete_if_orphaned_in(self, session: AsyncSession, tag_id: int) -> bool:
        """Delete the tag if no association references it. Returns True if deleted."""
        count = await session.scalar(
            select(func.count()).select_from(items_tags).where(items_tags.c.tag_id == tag_id),
        )
        if count:
            return False
        await session.execute(delete(Tag).where(Tag.id == tag_id))
        logger.info("tag_orphan_deleted", extra={"tag_id": tag_id})
        return True

    async def list_tags(self) -> list[TagResponse]:
        """All tags sorted by name."""
        return await self.store.run_atomic(self.list_tags_in)

    async def list_tags_in(self, session: AsyncSession) -> list[TagResponse]:
        """All tags sorted by name, inside a caller's scope."""
        result = await session.execute(select(Tag.id, Tag.name).order_by(Tag.name))
        return [TagResponse(id=row.id, name=row.name) for row in result]
