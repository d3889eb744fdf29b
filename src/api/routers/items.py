"""Item endpoints."""
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Request

from api.dependencies import check_rate_limit, get_app_settings, get_item_repository
from core.config import Settings
from core.exceptions import ValidationError
from schemas.item import (
    BulkReadRequest,
    BulkTagRequest,
    ImportResponse,
    ItemCreate,
    ItemCreatedResponse,
    ItemLookupResponse,
    ItemResponse,
    ItemUpdate,
    PageTitleResponse,
)
from services.bookmark_import import import_bookmarks
from services.item_repository import ItemRepository
from services.url_scraper import fetch_page_title

router = APIRouter(prefix="/items", tags=["items"], dependencies=[Depends(check_rate_limit)])


@router.get("", response_model=list[ItemResponse])
async def list_items(
    repository: ItemRepository = Depends(get_item_repository),
) -> list[ItemResponse]:
    """List all items with their tags, ordered by id."""
    return await repository.list_items()


@router.post("", response_model=ItemCreatedResponse, status_code=201)
async def create_item(
    data: ItemCreate,
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemCreatedResponse:
    """Create a new item."""
    item_id = await repository.create_item(data.title, data.url, data.tags, notes=data.notes)
    return ItemCreatedResponse(id=item_id)


@router.get("/lookup", response_model=ItemLookupResponse)
async def lookup_item(
    url: str = Query(min_length=1),
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemLookupResponse:
    """Find an item by exact URL (used by the browser extension)."""
    item = await repository.find_item_by_url(url)
    return ItemLookupResponse(found=item is not None, item=item)


@router.get("/fetch-title", response_model=PageTitleResponse)
async def fetch_title(
    url: str = Query(min_length=1),
    settings: Settings = Depends(get_app_settings),
) -> PageTitleResponse:
    """
    Fetch a page and return its title, for pre-filling the create form.

    Best effort: failures are reported in `error` with a 200 response.
    """
    page = await fetch_page_title(url, timeout=settings.fetch_timeout)
    return PageTitleResponse(
        url=page.url,
        final_url=page.final_url,
        title=page.title,
        error=page.error,
    )


@router.post("/import", response_model=ImportResponse)
async def import_bookmark_file(
    request: Request,
    repository: ItemRepository = Depends(get_item_repository),
) -> ImportResponse:
    """
    Import a browser bookmark export (HTML body).

    Links already in the catalog are skipped.
    """
    html = (await request.body()).decode("utf-8", errors="replace")
    result = await import_bookmarks(repository, html)
    return ImportResponse(imported=result.imported, skipped=result.skipped)


@router.post("/bulk/tag", response_model=list[ItemResponse])
async def bulk_tag_items(
    data: BulkTagRequest,
    repository: ItemRepository = Depends(get_item_repository),
) -> list[ItemResponse]:
    """
    Add tags to several items in one transaction.

    Existing tags are kept. Returns the affected items; an unknown id fails
    the whole request with 404.
    """
    return await repository.bulk_tag(data.item_ids, data.tag_names)


@router.post("/bulk/read", response_model=list[ItemResponse])
async def bulk_mark_read(
    data: BulkReadRequest,
    repository: ItemRepository = Depends(get_item_repository),
) -> list[ItemResponse]:
    """Mark several items read or unread in one transaction."""
    return await repository.bulk_mark_read(data.item_ids, data.read)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: str,
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemResponse:
    """Get a single item by id."""
    return await repository.get_item(item_id)


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: str,
    data: ItemUpdate,
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemResponse:
    """Update an item. Absent fields are unchanged; `tagNames` replaces the tag set."""
    return await repository.update_item(
        item_id,
        title=data.title,
        url=data.url,
        starred=data.starred,
        read=data.read,
        notes=data.notes,
        tag_names=data.tag_names,
    )


@router.post("/{item_id}/tag", response_model=ItemResponse)
async def tag_item(
    item_id: str,
    tag_name: Annotated[str, Body(min_length=1)],
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemResponse:
    """Add a tag (JSON string body) to an item, creating the tag if needed."""
    name = tag_name.strip()
    if not name:
        raise ValidationError("tag name is required")
    return await repository.tag_item(item_id, name)


@router.post("/{item_id}/untag", response_model=ItemResponse)
async def untag_item(
    item_id: str,
    tag_id: Annotated[int, Body()],
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemResponse:
    """Remove a tag (JSON integer id body) from an item."""
    return await repository.untag_item(item_id, tag_id)


@router.post("/{item_id}/read", response_model=ItemResponse)
async def set_item_read(
    item_id: str,
    read: Annotated[bool, Body()],
    repository: ItemRepository = Depends(get_item_repository),
) -> ItemResponse:
    """Mark an item read or unread (JSON boolean body)."""
    return await repository.set_read(item_id, read)
