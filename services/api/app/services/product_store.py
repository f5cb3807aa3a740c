from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from sqlalchemy import ColumnElement, and_, bindparam, case, false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute, Session, selectinload

from app.core.errors import StoreUnavailable
from app.models import Category, Product
from app.services.product_query import ProductFilters, SortField, SortOrder, SortSpec
from search_core.matchers import MatchType
from search_core.normalize import MalformedQueryInput, normalize_text, require_wellformed
from search_core.ranker import Direction

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RowWindow:
    rows: list[Any]
    has_more: bool


@contextmanager
def store_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("store_unavailable", extra={"operation": operation})
        raise StoreUnavailable(f"Catalog store failed during {operation}; retry later") from exc


def is_bindable(text: str) -> bool:
    """Whether `text` can travel as a SQL parameter (no lone surrogates)."""
    try:
        require_wellformed(text)
    except MalformedQueryInput:
        return False
    return True


def sort_expression(field: SortField) -> ColumnElement[Any]:
    if field is SortField.CATEGORY:
        category_name = (
            select(Category.name).where(Category.id == Product.category_id).correlate(Product).scalar_subquery()
        )
        return func.coalesce(category_name, "")
    columns = {
        SortField.CREATED_AT: Product.created_at,
        SortField.NAME: Product.name_normalized,
        SortField.SELLING_PRICE: Product.selling_price,
        SortField.PURCHASE_PRICE: Product.purchase_price,
        SortField.STOCK: Product.stock,
    }
    if field not in columns:
        raise ValueError(f"{field.value} is not a stored column")
    return columns[field]


def keyset_condition(
    expr: ColumnElement[Any],
    order: SortOrder,
    value: Any,
    row_id: str,
    direction: Direction,
    id_column: InstrumentedAttribute = Product.id,
) -> ColumnElement[bool]:
    """Rows strictly past `(value, row_id)` in display order `(expr order, id asc)`."""
    ahead = direction is Direction.FORWARD
    primary = expr > value if (order is SortOrder.ASC) == ahead else expr < value
    tie = id_column > row_id if ahead else id_column < row_id
    return or_(primary, and_(expr == value, tie))


def order_by(
    expr: ColumnElement[Any],
    order: SortOrder,
    direction: Direction,
    id_column: InstrumentedAttribute = Product.id,
) -> list:
    if direction is Direction.FORWARD:
        return [expr.asc() if order is SortOrder.ASC else expr.desc(), id_column.asc()]
    return [expr.desc() if order is SortOrder.ASC else expr.asc(), id_column.desc()]


def trim_window(rows: list[Any], limit: int, direction: Direction) -> RowWindow:
    """Cut a `limit + 1` fetch down to `limit` and put backward scans in display order."""
    has_more = len(rows) > limit
    rows = rows[:limit]
    if direction is Direction.BACKWARD:
        rows.reverse()
    return RowWindow(rows=rows, has_more=has_more)


class ProductStore:
    """Read-side capabilities of the catalog store, scoped per request."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def scope(self, shop_id: str, filters: ProductFilters) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [Product.shop_id == shop_id, Product.is_active.is_(True)]
        if filters.name:
            conditions.append(self.name_contains(filters.name))
        if filters.category_id:
            conditions.append(Product.category_id == filters.category_id)
        if filters.units:
            conditions.append(Product.unit.in_(filters.units))
        if filters.created_from is not None:
            conditions.append(Product.created_at >= filters.created_from)
        if filters.created_to is not None:
            conditions.append(Product.created_at <= filters.created_to)
        return conditions

    @staticmethod
    def name_contains(text: str) -> ColumnElement[bool]:
        text = normalize_text(text)
        if not is_bindable(text):
            # stored names are always well-formed, so nothing can contain it
            return false()
        return Product.name_normalized.contains(text, autoescape=True)

    @staticmethod
    def text_contains(text: str) -> ColumnElement[bool]:
        """Plain substring filter over name or sku."""
        text = normalize_text(text)
        if not is_bindable(text):
            return false()
        return or_(
            Product.name_normalized.contains(text, autoescape=True),
            Product.sku_normalized.contains(text, autoescape=True),
        )

    @staticmethod
    def restrict_to_ids(ids: Iterable[str]) -> ColumnElement[bool]:
        # rendered inline so large candidate sets do not hit the driver's bind parameter limit
        return Product.id.in_(bindparam("candidate_ids", list(ids), expanding=True, literal_execute=True))

    def scan_names(self, conditions: list[ColumnElement[bool]]) -> list[tuple[str, str, str | None]]:
        stmt = select(Product.id, Product.name_normalized, Product.sku_normalized).where(*conditions)
        with store_guard("scan_names"):
            return [(row.id, row.name_normalized, row.sku_normalized) for row in self.db.execute(stmt)]

    def resolve_literal_matches(
        self,
        conditions: list[ColumnElement[bool]],
        query: str,
        match_types: Iterable[MatchType],
    ) -> dict[str, MatchType]:
        """
        Exact / prefix / substring decided store-side in one pass over the name and
        sku indexes. A product matching on both fields keeps the stronger strategy.
        """
        enabled = set(match_types)
        fields = (Product.name_normalized, Product.sku_normalized)
        exact = or_(*(f == query for f in fields))
        prefix = or_(*(f.startswith(query, autoescape=True) for f in fields))

        if MatchType.SUBSTRING in enabled:
            candidate = or_(*(f.contains(query, autoescape=True) for f in fields))
        elif MatchType.PREFIX in enabled:
            candidate = prefix
        elif MatchType.EXACT in enabled:
            candidate = exact
        else:
            return {}

        kind = case(
            (exact, MatchType.EXACT.value),
            (prefix, MatchType.PREFIX.value),
            else_=MatchType.SUBSTRING.value,
        )
        stmt = select(Product.id, kind.label("kind")).where(*conditions, candidate)
        with store_guard("resolve_literal_matches"):
            resolved = {row.id: MatchType(row.kind) for row in self.db.execute(stmt)}
        return {pid: t for pid, t in resolved.items() if t in enabled}

    def _rows(self, stmt) -> list[Product]:
        stmt = stmt.options(selectinload(Product.category), selectinload(Product.supplier))
        return list(self.db.scalars(stmt))

    def keyset_window(
        self,
        conditions: list[ColumnElement[bool]],
        sort: SortSpec,
        *,
        limit: int,
        direction: Direction = Direction.FORWARD,
        boundary: tuple[Any, str] | None = None,
    ) -> RowWindow:
        """
        Fetch `limit + 1` rows past the boundary so `has_more` needs no count query.
        Backward scans run in inverted order and are flipped back to display order.
        """
        expr = sort_expression(sort.field)
        stmt = select(Product).where(*conditions)
        if boundary is not None:
            value, product_id = boundary
            stmt = stmt.where(keyset_condition(expr, sort.order, value, product_id, direction))
        stmt = stmt.order_by(*order_by(expr, sort.order, direction)).limit(limit + 1)

        with store_guard("keyset_window"):
            rows = self._rows(stmt)
        return trim_window(rows, limit, direction)

    def offset_window(
        self,
        conditions: list[ColumnElement[bool]],
        sort: SortSpec,
        *,
        offset: int,
        limit: int,
    ) -> list[Product]:
        expr = sort_expression(sort.field)
        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(*order_by(expr, sort.order, Direction.FORWARD))
            .offset(offset)
            .limit(limit)
        )
        with store_guard("offset_window"):
            return self._rows(stmt)

    def count(self, conditions: list[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(Product).where(*conditions)
        with store_guard("count"):
            return int(self.db.scalar(stmt) or 0)

    def fetch_by_ids(self, ids: list[str]) -> dict[str, Product]:
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        with store_guard("fetch_by_ids"):
            return {p.id: p for p in self._rows(stmt)}

    def unit_counts(self, shop_id: str) -> list[tuple[str | None, int]]:
        n = func.count(Product.id).label("n")
        stmt = (
            select(Product.unit, n)
            .where(Product.shop_id == shop_id, Product.is_active.is_(True))
            .group_by(Product.unit)
            .order_by(n.desc(), Product.unit.asc())
        )
        with store_guard("unit_counts"):
            return [(row.unit, int(row.n)) for row in self.db.execute(stmt)]

    def is_name_taken(self, shop_id: str, name: str, exclude_id: str | None = None) -> bool:
        normalized = normalize_text(name)
        if not normalized or not is_bindable(normalized):
            return False
        stmt = select(Product.id).where(Product.shop_id == shop_id, Product.name_normalized == normalized)
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        with store_guard("is_name_taken"):
            return self.db.execute(stmt.limit(1)).first() is not None
