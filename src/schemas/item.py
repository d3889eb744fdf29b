"""Pydantic schemas for item endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from schemas.tag import TagResponse


def clean_tag_names(tags: list[str]) -> list[str]:
    """
    Strip whitespace and drop empty tag names, keeping first-seen order.

    Case is preserved: tag names are case-sensitive.
    """
    cleaned = []
    for tag in tags:
        name = tag.strip()
        if name and name not in cleaned:
            cleaned.append(name)
    return cleaned


class _CamelModel(BaseModel):
    """Request/response models use camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ItemCreate(_CamelModel):
    """Schema for creating a new item."""

    model_config = ConfigDict(extra="forbid")

    title: str
    url: str
    notes: str | None = None
    tags: list[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str]:
        """Treat a null tag list as empty."""
        if v is None:
            return []
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        """Drop blank names and duplicates."""
        return clean_tag_names(v)


class ItemUpdate(_CamelModel):
    """
    Schema for a partial item update.

    Absent fields are left unchanged. `tagNames` replaces the whole tag set
    when present; an empty list removes every tag. Blank `notes` clears them.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    url: str | None = None
    starred: bool | None = None
    read: bool | None = None
    notes: str | None = None
    tag_names: list[str] | None = None

    @field_validator("tag_names")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str] | None:
        """Drop blank names and duplicates if provided."""
        if v is None:
            return None
        return clean_tag_names(v)


class BulkTagRequest(_CamelModel):
    """Add the same tags to several items at once."""

    model_config = ConfigDict(extra="forbid")

    item_ids: list[str]
    tag_names: list[str]

    @field_validator("tag_names")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        """Drop blank names and duplicates."""
        return clean_tag_names(v)


class BulkReadRequest(_CamelModel):
    """Mark several items read or unread."""

    model_config = ConfigDict(extra="forbid")

    item_ids: list[str]
    read: bool


class ItemResponse(_CamelModel):
    """An item with its tags in first-seen order."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    url: str
    starred: bool
    read: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime
    tags: list[TagResponse]


class ItemCreatedResponse(BaseModel):
    """Id of a newly created item."""

    id: str


class ItemLookupResponse(BaseModel):
    """Result of looking an item up by exact URL."""

    found: bool
    item: ItemResponse | None = None


class PageTitleResponse(_CamelModel):
    """Title fetched from a remote page (best effort)."""

    url: str
    final_url: str
    title: str | None
    error: str | None = None


class ImportResponse(BaseModel):
    """Outcome of a bookmark file import."""

    imported: int
    skipped: int
