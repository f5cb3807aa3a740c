from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import settings
from app.core.context import shop_id_ctx
from app.schemas.product import (
    NameCheckOut,
    ProductCursorPageOut,
    ProductOffsetPageOut,
    ProductOut,
    RefOut,
    UnitCountOut,
)
from app.services.product_pages import PageItem, ProductPager
from app.services.product_query import build_page_request
from app.services.product_store import ProductStore
from search_core.normalize import normalize_text

router = APIRouter()


def _product_out(item: PageItem) -> ProductOut:
    p = item.product
    return ProductOut(
        product_id=p.id,
        name=p.name,
        sku=p.sku,
        selling_price=p.selling_price,
        purchase_price=p.purchase_price,
        stock=p.stock,
        reorder_point=p.reorder_point,
        unit=p.unit,
        is_active=p.is_active,
        category=RefOut.model_validate(p.category) if p.category is not None else None,
        supplier=RefOut.model_validate(p.supplier) if p.supplier is not None else None,
        created_at=p.created_at,
        updated_at=p.updated_at,
        match_type=item.match_type.value if item.match_type is not None else None,
        match_score=item.match_score,
    )


@router.get(
    "/shops/{shop_id}/products",
    response_model=ProductCursorPageOut | ProductOffsetPageOut,
)
def list_products(
    shop_id: str,
    query: str | None = Query(default=None),
    enable_fuzzy_search: bool | None = Query(default=None, alias="enableFuzzySearch"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    name_filter: str | None = Query(default=None, alias="nameFilter"),
    category_filter: str | None = Query(default=None, alias="categoryFilter"),
    unit_filter: str | None = Query(default=None, alias="unitFilter"),
    date_range_filter: str | None = Query(default=None, alias="dateRangeFilter"),
    cursor: str | None = Query(default=None),
    direction: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    pagination: Literal["cursor", "offset"] = Query(default="cursor"),
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
) -> ProductCursorPageOut | ProductOffsetPageOut:
    """
    Product listing with fuzzy ranking.

    A non-empty `query` ranks products by match quality unless `sortBy` pins a
    column. `pagination=offset` is the legacy page-number mode with totals.
    """
    shop_id_ctx.set(shop_id)
    request = build_page_request(
        shop_id,
        query=query,
        enable_fuzzy=enable_fuzzy_search,
        sort_by=sort_by,
        sort_order=sort_order,
        name_filter=name_filter,
        category_filter=category_filter,
        unit_filter=unit_filter,
        date_range_filter=date_range_filter,
        cursor=cursor,
        direction=direction,
        limit=limit,
    )
    pager = ProductPager(db, cursor_secret=settings.cursor_secret)

    if pagination == "offset":
        result = pager.page_offset(request, page)
        return ProductOffsetPageOut(
            items=[_product_out(i) for i in result.items],
            total_count=result.total_count,
            total_pages=result.total_pages,
            current_page=result.current_page,
        )

    result = pager.page(request)
    return ProductCursorPageOut(
        items=[_product_out(i) for i in result.items],
        next_cursor=result.next_cursor,
        prev_cursor=result.prev_cursor,
        has_next_page=result.has_next,
        has_prev_page=result.has_prev,
    )


@router.get("/shops/{shop_id}/products/units", response_model=list[UnitCountOut])
def product_units(shop_id: str, db: Session = Depends(get_db)) -> list[UnitCountOut]:
    shop_id_ctx.set(shop_id)
    return [UnitCountOut(unit=unit, count=n) for unit, n in ProductStore(db).unit_counts(shop_id)]


@router.get("/shops/{shop_id}/products/check-name", response_model=NameCheckOut)
def check_product_name(
    shop_id: str,
    name: str = Query(..., min_length=1),
    exclude_id: str | None = Query(default=None, alias="excludeId"),
    db: Session = Depends(get_db),
) -> NameCheckOut:
    shop_id_ctx.set(shop_id)
    taken = ProductStore(db).is_name_taken(shop_id, name, exclude_id)
    return NameCheckOut(name=name, normalized=normalize_text(name), taken=taken)
