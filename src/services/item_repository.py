"""Item CRUD and read-side aggregation of items with their tags."""
import logging
import uuid
from collections.abc import Iterable, Sequence
from itertools import groupby
from operator import attrgetter

from sqlalchemy import Row, Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError, ValidationError
from db.session import TransactionalStore
from models.base import utcnow
from models.item import Item
from models.tag import Tag, items_tags
from schemas.item import ItemResponse
from schemas.tag import TagResponse
from services.association_reconciler import AssociationReconciler, dedupe
from services.tag_registry import TagRegistry

logger = logging.getLogger(__name__)


def _require(field: str, value: str | None) -> None:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")


def _clean_notes(notes: str | None) -> str | None:
    if notes is None or not notes.strip():
        return None
    return notes


def _item_rows_query() -> Select:
    """Items LEFT JOIN associations LEFT JOIN tags, ordered by item id then tag id."""
    return (
        select(
            Item.id,
            Item.title,
            Item.url,
            Item.starred,
            Item.read,
            Item.notes,
            Item.created_at,
            Item.updated_at,
            Tag.id.label("tag_id"),
            Tag.name.label("tag_name"),
        )
        .select_from(Item)
        .outerjoin(items_tags, items_tags.c.item_id == Item.id)
        .outerjoin(Tag, Tag.id == items_tags.c.tag_id)
        .order_by(Item.id, Tag.id)
    )


def fold_item_rows(rows: Iterable[Row]) -> list[ItemResponse]:
    """
    Fold flat (item, tag) rows into one ItemResponse per item.

    Rows must arrive grouped by item id; item order and tag order are taken
    from the row order.
    """
    items = []
    for _, group in groupby(rows, key=attrgetter("id")):
        item_rows = list(group)
        first = item_rows[0]
        items.append(
            ItemResponse(
                id=first.id,
                title=first.title,
                url=first.url,
                starred=first.starred,
                read=first.read,
                notes=first.notes,
                created_at=first.created_at,
                updated_at=first.updated_at,
                tags=[
                    TagResponse(id=row.tag_id, name=row.tag_name)
                    for row in item_rows
                    if row.tag_id is not None
                ],
            ),
        )
    return items


class ItemRepository:
    """
    Item operations exposed to the HTTP layer.

    Each public method is one transaction on the injected store. Tag changes
    are delegated to the AssociationReconciler inside that same transaction.
    """

    def __init__(
        self,
        store: TransactionalStore,
        registry: TagRegistry,
        reconciler: AssociationReconciler,
    ) -> None:
        self.store = store
        self.registry = registry
        self.reconciler = reconciler

    @classmethod
    def from_store(cls, store: TransactionalStore) -> "ItemRepository":
        """Wire a repository with its registry and reconciler."""
        registry = TagRegistry(store)
        return cls(store, registry, AssociationReconciler(store, registry))

    # Reads

    async def list_items(self) -> list[ItemResponse]:
        """All items ordered by id, each with its tags."""
        return await self.store.run_atomic(self._list_in)

    async def get_item(self, item_id: str) -> ItemResponse:
        """
        Get one item with its tags.

        Raises:
            NotFoundError: If no item has this id.
        """
        return await self.store.run_atomic(lambda session: self._get_in(session, item_id))

    async def find_item_by_url(self, url: str) -> ItemResponse | None:
        """Earliest-created item whose url equals `url` exactly, or None."""

        async def _find(session: AsyncSession) -> ItemResponse | None:
            item_id = await session.scalar(
                select(Item.id).where(Item.url == url).order_by(Item.created_at, Item.id).limit(1),
            )
            if item_id is None:
                return None
            return await self._get_in(session, item_id)

        return await self.store.run_atomic(_find)

    async def list_tags(self) -> list[TagResponse]:
        """All tags sorted by name."""
        return await self.registry.list_tags()

    # Writes

    async def create_item(
        self,
        title: str,
        url: str,
        tag_names: Sequence[str] = (),
        *,
        notes: str | None = None,
    ) -> str:
        """
        Create an item with the given tags and return its id.

        Raises:
            ValidationError: If title or url is empty, or a tag name is empty.
            ConflictError: If a new tag name was created concurrently.
        """
        _require("title", title)
        _require("url", url)
        item_id = str(uuid.uuid4())

        async def _create(session: AsyncSession) -> str:
            now = utcnow()
            session.add(
                Item(
                    id=item_id,
                    title=title,
                    url=url,
                    starred=False,
                    read=False,
                    notes=_clean_notes(notes),
                    created_at=now,
                    updated_at=now,
                ),
            )
            # The item row must exist before association rows reference it
            await session.flush()
            await self.reconciler.reconcile_in(session, item_id, tag_names)
            return item_id

        await self.store.run_atomic(_create)
        logger.info("item_created", extra={"item_id": item_id, "tag_count": len(tag_names)})
        return item_id

    async def update_item(
        self,
        item_id: str,
        *,
        title: str | None = None,
        url: str | None = None,
        starred: bool | None = None,
        read: bool | None = None,
        notes: str | None = None,
        tag_names: Sequence[str] | None = None,
    ) -> ItemResponse:
        """
        Apply a partial update and return the updated item.

        None means "leave unchanged" for every argument; an empty `tag_names`
        removes all tags and blank `notes` clears them. updated_at moves
        forward only if a field was supplied or the tag set actually changed.

        Raises:
            ValidationError: If title or url is supplied but empty.
            NotFoundError: If no item has this id.
        """
        if title is not None:
            _require("title", title)
        if url is not None:
            _require("url", url)

        fields = {
            name: value
            for name, value in (
                ("title", title), ("url", url), ("starred", starred), ("read", read),
            )
            if value is not None
        }
        if notes is not None:
            fields["notes"] = _clean_notes(notes)

        async def _update(session: AsyncSession) -> ItemResponse:
            item = await self._load_in(session, item_id)
            for name, value in fields.items():
                setattr(item, name, value)
            changed = bool(fields)
            if tag_names is not None:
                result = await self.reconciler.reconcile_in(session, item_id, tag_names)
                changed = changed or result.changed
            if changed:
                self._touch(item)
            return await self._get_in(session, item_id)

        return await self.store.run_atomic(_update)

    async def tag_item(self, item_id: str, tag_name: str) -> ItemResponse:
        """
        Add one tag to an item; a tag already on the item is a no-op.

        Raises:
            ValidationError: If the tag name is empty.
            NotFoundError: If no item has this id.
        """
        if not tag_name:
            raise ValidationError("tag name is required")

        async def _tag(session: AsyncSession) -> ItemResponse:
            item = await self._load_in(session, item_id)
            result = await self.reconciler.add_tag_in(session, item_id, tag_name)
            if result.changed:
                self._touch(item)
            return await self._get_in(session, item_id)

        return await self.store.run_atomic(_tag)

    async def untag_item(self, item_id: str, tag_id: int) -> ItemResponse:
        """
        Remove one tag from an item, deleting the tag if nothing else uses it.

        Untagging a tag the item does not carry is a no-op.

        Raises:
            NotFoundError: If the item or the tag does not exist.
        """

        async def _untag(session: AsyncSession) -> ItemResponse:
            item = await self._load_in(session, item_id)
            if await self.registry.get_tag_in(session, tag_id) is None:
                raise NotFoundError("Tag", tag_id)
            result = await self.reconciler.remove_tag_in(session, item_id, tag_id)
            if result.changed:
                self._touch(item)
            return await self._get_in(session, item_id)

        return await self.store.run_atomic(_untag)

    async def set_read(self, item_id: str, read: bool) -> ItemResponse:
        """
        Mark one item read or unread. updated_at always moves forward.

        Raises:
            NotFoundError: If no item has this id.
        """

        async def _set(session: AsyncSession) -> ItemResponse:
            item = await self._load_in(session, item_id)
            item.read = read
            self._touch(item)
            return await self._get_in(session, item_id)

        return await self.store.run_atomic(_set)

    async def bulk_mark_read(self, item_ids: Sequence[str], read: bool) -> list[ItemResponse]:
        """
        Mark several items read or unread in one transaction.

        An empty id list is a no-op. Items are returned ordered by id.

        Raises:
            NotFoundError: If any id is unknown; no item is changed then.
        """
        ids = dedupe(item_ids)
        if not ids:
            return []

        async def _mark(session: AsyncSession) -> list[ItemResponse]:
            for item in await self._load_many_in(session, ids):
                item.read = read
                self._touch(item)
            return await self._get_many_in(session, ids)

        items = await self.store.run_atomic(_mark)
        logger.info("items_marked_read", extra={"item_count": len(ids), "read": read})
        return items

    async def bulk_tag(
        self, item_ids: Sequence[str], tag_names: Sequence[str],
    ) -> list[ItemResponse]:
        """
        Add every tag in `tag_names` to every item in `item_ids` in one transaction.

        Tags already on an item are kept, so only items that gained a tag have
        updated_at moved. Either list being empty is a no-op. Items are returned
        ordered by id.

        Raises:
            ValidationError: If a tag name is empty.
            NotFoundError: If any id is unknown; nothing is written then.
        """
        ids = dedupe(item_ids)
        names = dedupe(tag_names)
        if not ids or not names:
            return []
        for name in names:
            if not name:
                raise ValidationError("tag name is required")

        async def _tag(session: AsyncSession) -> list[ItemResponse]:
            for item in await self._load_many_in(session, ids):
                result = await self.reconciler.add_tags_in(session, item.id, names)
                if result.changed:
                    self._touch(item)
            return await self._get_many_in(session, ids)

        items = await self.store.run_atomic(_tag)
        logger.info("items_bulk_tagged", extra={"item_count": len(ids), "tag_names": names})
        return items

    # Helpers (run inside a caller's scope)

    async def _list_in(self, session: AsyncSession) -> list[ItemResponse]:
        result = await session.execute(_item_rows_query())
        return fold_item_rows(result)

    async def _get_in(self, session: AsyncSession, item_id: str) -> ItemResponse:
        result = await session.execute(_item_rows_query().where(Item.id == item_id))
        items = fold_item_rows(result)
        if not items:
            raise NotFoundError("Item", item_id)
        return items[0]

    async def _load_in(self, session: AsyncSession, item_id: str) -> Item:
        item = await session.get(Item, item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    async def _load_many_in(self, session: AsyncSession, item_ids: Sequence[str]) -> list[Item]:
        result = await session.execute(select(Item).where(Item.id.in_(item_ids)))
        by_id = {item.id: item for item in result.scalars()}
        for item_id in item_ids:
            if item_id not in by_id:
                raise NotFoundError("Item", item_id)
        return [by_id[item_id] for item_id in item_ids]

    async def _get_many_in(
        self, session: AsyncSession, item_ids: Sequence[str],
    ) -> list[ItemResponse]:
        result = await session.execute(_item_rows_query().where(Item.id.in_(item_ids)))
        return fold_item_rows(result)

    @staticmethod
    def _touch(item: Item) -> None:
        # Never move backwards, even if the clock does
        item.updated_at = max(utcnow(), item.updated_at)
