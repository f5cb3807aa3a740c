from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.orm import Session

from app.models import Category, Product
from app.services.product_query import SortOrder
from app.services.product_store import RowWindow, keyset_condition, order_by, store_guard, trim_window
from search_core.ranker import Direction


class CategoryStore:
    """Category reads for one shop; listings are ordered by normalized name."""

    def __init__(self, db: Session) -> None:
        self.db = db

    @staticmethod
    def scope(shop_id: str) -> list[ColumnElement[bool]]:
        return [Category.shop_id == shop_id]

    def scan_names(self, conditions: list[ColumnElement[bool]]) -> list[tuple[str, str]]:
        stmt = select(Category.id, Category.name_normalized).where(*conditions)
        with store_guard("scan_category_names"):
            return [(row.id, row.name_normalized) for row in self.db.execute(stmt)]

    def keyset_window(
        self,
        conditions: list[ColumnElement[bool]],
        *,
        limit: int,
        direction: Direction = Direction.FORWARD,
        boundary: tuple[Any, str] | None = None,
    ) -> RowWindow:
        expr = Category.name_normalized
        stmt = select(Category).where(*conditions)
        if boundary is not None:
            value, category_id = boundary
            stmt = stmt.where(keyset_condition(expr, SortOrder.ASC, value, category_id, direction, Category.id))
        stmt = stmt.order_by(*order_by(expr, SortOrder.ASC, direction, Category.id)).limit(limit + 1)

        with store_guard("category_keyset_window"):
            rows = list(self.db.scalars(stmt))
        return trim_window(rows, limit, direction)

    def fetch_by_ids(self, ids: list[str]) -> dict[str, Category]:
        if not ids:
            return {}
        with store_guard("fetch_categories"):
            return {c.id: c for c in self.db.scalars(select(Category).where(Category.id.in_(ids)))}

    def product_counts(self, ids: list[str]) -> dict[str, int]:
        """Active products per category."""
        if not ids:
            return {}
        stmt = (
            select(Product.category_id, func.count(Product.id).label("n"))
            .where(Product.category_id.in_(ids), Product.is_active.is_(True))
            .group_by(Product.category_id)
        )
        with store_guard("category_product_counts"):
            return {row.category_id: int(row.n) for row in self.db.execute(stmt)}
