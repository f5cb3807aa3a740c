from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RefOut(_CamelModel):
    id: str
    name: str


class ProductOut(_CamelModel):
    product_id: str
    name: str
    sku: str | None = None
    selling_price: int
    purchase_price: int
    stock: int
    reorder_point: int | None = None
    unit: str | None = None
    is_active: bool
    category: RefOut | None = None
    supplier: RefOut | None = None
    created_at: datetime
    updated_at: datetime | None = None
    match_type: str | None = None
    match_score: float | None = None


class ProductCursorPageOut(_CamelModel):
    items: list[ProductOut]
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_next_page: bool
    has_prev_page: bool


class ProductOffsetPageOut(_CamelModel):
    items: list[ProductOut]
    total_count: int
    total_pages: int
    current_page: int


class UnitCountOut(_CamelModel):
    unit: str | None
    count: int


class NameCheckOut(_CamelModel):
    name: str
    normalized: str
    taken: bool
