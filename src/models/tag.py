"""Tag model and the items_tags association table."""
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, Index, Integer, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.item import Item


items_tags = Table(
    "items_tags",
    Base.metadata,
    Column("item_id", Text, ForeignKey("items.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
    Index("ix_items_tags_tag_id", "tag_id"),
)


class Tag(Base):
    """Tag shared across items; deleted as soon as no item references it."""

    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("name", name="uq_tags_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Case-sensitive, stored as given
    name: Mapped[str] = mapped_column(Text, nullable=False)

    items: Mapped[list["Item"]] = relationship(
        secondary=items_tags,
        back_populates="tags",
        viewonly=True,
    )
