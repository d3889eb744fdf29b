"""Tag endpoints."""
from fastapi import APIRouter, Depends

from api.dependencies import check_rate_limit, get_item_repository
from schemas.tag import TagResponse
from services.item_repository import ItemRepository

router = APIRouter(prefix="/tags", tags=["tags"], dependencies=[Depends(check_rate_limit)])


@router.get("", response_model=list[TagResponse])
async def list_tags(
    repository: ItemRepository = Depends(get_item_repository),
) -> list[TagResponse]:
    """
    Get all tags sorted by name.

    Only tags attached to at least one item exist; unused tags are deleted as
    soon as their last item drops them.
    """
    return await repository.list_tags()
