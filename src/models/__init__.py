"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UTCDateTime, utcnow
from models.item import Item
from models.tag import Tag, items_tags

__all__ = ["Base", "Item", "Tag", "TimestampMixin", "UTCDateTime", "items_tags", "utcnow"]
