"""Item model for storing bookmarked URLs."""
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.tag import items_tags

if TYPE_CHECKING:
    from models.tag import Tag


class Item(Base, TimestampMixin):
    """Item model - a titled URL with starred/read flags, optional notes and a set of tags."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(Text, primary_key=True, comment="UUID4 string, never reused")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    starred: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )
    read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Association rows are written by services.association_reconciler only
    tags: Mapped[list["Tag"]] = relationship(
        secondary=items_tags,
        back_populates="items",
        viewonly=True,
    )
