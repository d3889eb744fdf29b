"""
Item/tag association synchronization.

Every path that changes an item's tags (create, update, tag, untag, bulk tag) goes
through AssociationReconciler.apply_in, which diffs the existing association
set against the desired one and writes only the difference:

1. resolve desired names to ids (creating tags as needed),
2. read the existing tag ids for the item,
3. compute to_remove = existing - desired and to_add = desired - existing,
4. delete removals, deleting each tag left without associations,
5. insert additions.

All of it runs inside the caller's transaction scope, so a failure at any step
leaves the previous association set untouched.
"""
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import TransactionalStore
from models.tag import items_tags
from services.tag_registry import TagRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReconcileResult:
    """Association changes made by one reconciliation."""

    added: tuple[int, ...] = ()
    removed: tuple[int, ...] = ()
    deleted_tags: tuple[int, ...] = ()

    @property
    def changed(self) -> bool:
        """True if any association was inserted or deleted."""
        return bool(self.added or self.removed)


def dedupe(values: Iterable[T]) -> list[T]:
    """Drop repeated values, keeping the first occurrence order."""
    return list(dict.fromkeys(values))


class AssociationReconciler:
    """Brings an item's association set to a desired state with minimal writes."""

    def __init__(self, store: TransactionalStore, registry: TagRegistry) -> None:
        self.store = store
        self.registry = registry

    async def sync(self, item_id: str, tag_names: Sequence[str]) -> ReconcileResult:
        """Reconcile in a scope of its own."""
        return await self.store.run_atomic(
            lambda session: self.reconcile_in(session, item_id, tag_names),
        )

    async def reconcile_in(
        self,
        session: AsyncSession,
        item_id: str,
        tag_names: Sequence[str],
    ) -> ReconcileResult:
        """Make the item's tags exactly `tag_names`."""
        # Names are resolved before looking at existing state so each distinct
        # name is created at most once.
        desired_ids = [
            await self.registry.resolve_in(session, name) for name in dedupe(tag_names)
        ]
        return await self.apply_in(session, item_id, desired_ids)

    async def add_tag_in(
        self,
        session: AsyncSession,
        item_id: str,
        tag_name: str,
    ) -> ReconcileResult:
        """Desired = existing + {tag_name}."""
        return await self.add_tags_in(session, item_id, [tag_name])

    async def add_tags_in(
        self,
        session: AsyncSession,
        item_id: str,
        tag_names: Sequence[str],
    ) -> ReconcileResult:
        """Desired = existing + tag_names. Nothing already on the item is removed."""
        tag_ids = [await self.registry.resolve_in(session, name) for name in dedupe(tag_names)]
        existing = await self.existing_tag_ids_in(session, item_id)
        return await self.apply_in(session, item_id, [*existing, *tag_ids], existing=existing)

    async def remove_tag_in(
        self,
        session: AsyncSession,
        item_id: str,
        tag_id: int,
    ) -> ReconcileResult:
        """Desired = existing - {tag_id}."""
        existing = await self.existing_tag_ids_in(session, item_id)
        desired = [existing_id for existing_id in existing if existing_id != tag_id]
        return await self.apply_in(session, item_id, desired, existing=existing)

    async def existing_tag_ids_in(self, session: AsyncSession, item_id: str) -> list[int]:
        """Tag ids currently associated with the item, ascending."""
        result = await session.execute(
            select(items_tags.c.tag_id)
            .where(items_tags.c.item_id == item_id)
            .order_by(items_tags.c.tag_id),
        )
        return list(result.scalars())

    async def apply_in(
        self,
        session: AsyncSession,
        item_id: str,
        desired_ids: Sequence[int],
        existing: Sequence[int] | None = None,
    ) -> ReconcileResult:
        """Diff `desired_ids` against the stored set and apply the difference."""
        if existing is None:
            existing = await self.existing_tag_ids_in(session, item_id)

        existing_set = set(existing)
        desired_set = set(desired_ids)
        to_remove = [tag_id for tag_id in existing if tag_id not in desired_set]
        to_add = [tag_id for tag_id in dedupe(desired_ids) if tag_id not in existing_set]

        if not to_remove and not to_add:
            return ReconcileResult()

        deleted_tags = await self._remove_associations(session, item_id, to_remove)
        await self._add_associations(session, item_id, to_add)

        logger.info(
            "tags_reconciled",
            extra={
                "item_id": item_id,
                "added": to_add,
                "removed": to_remove,
                "deleted_tags": deleted_tags,
            },
        )
        return ReconcileResult(
            added=tuple(to_add),
            removed=tuple(to_remove),
            deleted_tags=tuple(deleted_tags),
        )

    async def _remove_associations(
        self,
        session: AsyncSession,
        item_id: str,
        tag_ids: Sequence[int],
    ) -> list[int]:
        """Delete associations one by one, each followed by an orphan check."""
        deleted_tags = []
        for tag_id in tag_ids:
            await session.execute(
                delete(items_tags).where(
                    and_(items_tags.c.item_id == item_id, items_tags.c.tag_id == tag_id),
                ),
            )
            if await self.registry.delete_if_orphaned_in(session, tag_id):
                deleted_tags.append(tag_id)
        return deleted_tags

    async def _add_associations(
        self,
        session: AsyncSession,
        item_id: str,
        tag_ids: Sequence[int],
    ) -> None:
        if not tag_ids:
            return
        await session.execute(
            insert(items_tags),
            [{"item_id": item_id, "tag_id": tag_id} for tag_id in tag_ids],
        )

