"""Pydantic schemas for tag endpoints."""
from pydantic import BaseModel, ConfigDict


class TagResponse(BaseModel):
    """Schema for a tag (id and case-sensitive name)."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
