from __future__ import annotations

from app.schemas.product import _CamelModel


class CategoryOut(_CamelModel):
    category_id: str
    name: str
    product_count: int
    match_type: str | None = None
    match_score: float | None = None


class CategoryCursorPageOut(_CamelModel):
    items: list[CategoryOut]
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_next_page: bool
    has_prev_page: bool
