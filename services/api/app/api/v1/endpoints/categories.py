from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import settings
from app.core.context import shop_id_ctx
from app.schemas.category import CategoryCursorPageOut, CategoryOut
from app.services.category_pages import CategoryItem, CategoryPager, build_category_request

router = APIRouter()


def _category_out(item: CategoryItem) -> CategoryOut:
    return CategoryOut(
        category_id=item.category.id,
        name=item.category.name,
        product_count=item.product_count,
        match_type=item.match_type.value if item.match_type is not None else None,
        match_score=item.match_score,
    )


@router.get("/shops/{shop_id}/categories", response_model=CategoryCursorPageOut)
def list_categories(
    shop_id: str,
    query: str | None = Query(default=None),
    enable_fuzzy_search: bool | None = Query(default=None, alias="enableFuzzySearch"),
    cursor: str | None = Query(default=None),
    direction: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> CategoryCursorPageOut:
    """Categories by name, or ranked by match quality when `query` is set."""
    shop_id_ctx.set(shop_id)
    request = build_category_request(
        shop_id,
        query=query,
        enable_fuzzy=enable_fuzzy_search,
        cursor=cursor,
        direction=direction,
        limit=limit,
    )
    result = CategoryPager(db, cursor_secret=settings.cursor_secret).page(request)
    return CategoryCursorPageOut(
        items=[_category_out(i) for i in result.items],
        next_cursor=result.next_cursor,
        prev_cursor=result.prev_cursor,
        has_next_page=result.has_next,
        has_prev_page=result.has_prev,
    )
