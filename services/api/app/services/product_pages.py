from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models import Product
from app.services.cursor_codec import Cursor, build_cursor, decode_cursor
from app.services.product_query import ProductPageRequest, SortField, SortSpec, effective_sort, fingerprint
from app.services.product_store import ProductStore, is_bindable
from search_core.aggregator import Candidate, aggregate
from search_core.classifier import ClassifiedQuery, classify
from search_core.matchers import LITERAL_MATCH_TYPES, MatchType, matchers_for
from search_core.ranker import Direction, key_from_value, rank, window

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PageItem:
    product: Product
    match_type: MatchType | None = None
    match_score: float | None = None


@dataclass(slots=True)
class ProductPage:
    items: list[PageItem]
    next_cursor: str | None
    prev_cursor: str | None
    has_next: bool
    has_prev: bool


@dataclass(slots=True)
class ProductOffsetPage:
    items: list[PageItem]
    total_count: int
    total_pages: int
    current_page: int


@dataclass(slots=True)
class _Plan:
    classified: ClassifiedQuery
    sort: SortSpec
    fingerprint: str


class ProductPager:
    def __init__(self, db: Session, *, cursor_secret: str | None = None) -> None:
        self.store = ProductStore(db)
        self.cursor_secret = cursor_secret

    def _plan(self, request: ProductPageRequest) -> _Plan:
        classified = classify(request.query, enable_fuzzy=request.enable_fuzzy)
        sort = effective_sort(request, classified)
        return _Plan(classified=classified, sort=sort, fingerprint=fingerprint(request, classified, sort))

    def _conditions(self, request: ProductPageRequest, classified: ClassifiedQuery) -> list:
        conditions = self.store.scope(request.shop_id, request.filters)
        if not classified.ranked and classified.text:
            # fuzzy disabled: the query degrades to a plain name or sku filter
            conditions.append(self.store.text_contains(classified.text))
        return conditions

    def _candidates(self, conditions: list, classified: ClassifiedQuery) -> list[Candidate]:
        resolved: dict[str, MatchType] | None = None
        if is_bindable(classified.text):
            enabled = [t for t, _ in matchers_for(classified.mode)]
            resolved = self.store.resolve_literal_matches(
                conditions, classified.text, [t for t in enabled if t in LITERAL_MATCH_TYPES]
            )
        else:
            # the literal pass cannot be pushed down; every matcher runs in-process
            logger.warning("literal_pushdown_skipped", extra={"reason": "malformed_query"})
        rows = self.store.scan_names(conditions)
        return aggregate(rows, classified, resolved=resolved)

    def _cursor(self, plan: _Plan, item: PageItem, direction: Direction, candidate: Candidate | None) -> str:
        return build_cursor(
            sort_field=plan.sort.field,
            product=item.product,
            direction=direction,
            fingerprint=plan.fingerprint,
            candidate=candidate,
            secret=self.cursor_secret,
        )

    def page(self, request: ProductPageRequest) -> ProductPage:
        plan = self._plan(request)
        boundary: Cursor | None = None
        if request.cursor:
            boundary = decode_cursor(request.cursor, expected_fingerprint=plan.fingerprint, secret=self.cursor_secret)

        conditions = self._conditions(request, plan.classified)
        candidates: list[Candidate] = []
        by_id: dict[str, Candidate] = {}

        if plan.classified.ranked:
            candidates = self._candidates(conditions, plan.classified)
            by_id = {c.product_id: c for c in candidates}

        if plan.sort.field is SortField.RELEVANCE:
            after = key_from_value(boundary.sort_value, boundary.row_id) if boundary else None
            win = window(rank(candidates), limit=request.limit, direction=request.direction, after=after)
            products = self.store.fetch_by_ids([c.product_id for c in win.items])
            # a product deleted between the scan and the fetch simply drops out of the page
            items = [
                PageItem(products[c.product_id], c.match_type, c.match_score)
                for c in win.items
                if c.product_id in products
            ]
            has_more = win.has_more
        elif plan.classified.ranked and not by_id:
            items, has_more = [], False
        else:
            if plan.classified.ranked:
                conditions.append(self.store.restrict_to_ids(by_id))
            rows = self.store.keyset_window(
                conditions,
                plan.sort,
                limit=request.limit,
                direction=request.direction,
                boundary=(boundary.sort_value, boundary.row_id) if boundary else None,
            )
            items = [self._item(p, by_id) for p in rows.rows]
            has_more = rows.has_more

        if request.direction is Direction.FORWARD:
            has_next, has_prev = has_more, boundary is not None
        else:
            has_next, has_prev = boundary is not None, has_more

        next_cursor = prev_cursor = None
        if items:
            first, last = items[0], items[-1]
            next_cursor = self._cursor(plan, last, Direction.FORWARD, by_id.get(last.product.id))
            prev_cursor = self._cursor(plan, first, Direction.BACKWARD, by_id.get(first.product.id))

        logger.info(
            "product_page_served",
            extra={
                "mode": plan.classified.mode.value,
                "sort": plan.sort.field.value,
                "direction": request.direction.value,
                "limit": request.limit,
                "count": len(items),
                "candidates": len(by_id),
            },
        )
        return ProductPage(
            items=items,
            next_cursor=next_cursor,
            prev_cursor=prev_cursor,
            has_next=has_next,
            has_prev=has_prev,
        )

    def page_offset(self, request: ProductPageRequest, page: int = 1) -> ProductOffsetPage:
        """Legacy page-number listing with totals; same ranking, no cursors."""
        plan = self._plan(request)
        page = max(1, page)
        offset = (page - 1) * request.limit
        conditions = self._conditions(request, plan.classified)
        candidates: list[Candidate] = []
        by_id: dict[str, Candidate] = {}

        if plan.classified.ranked:
            candidates = self._candidates(conditions, plan.classified)
            by_id = {c.product_id: c for c in candidates}

        if plan.sort.field is SortField.RELEVANCE:
            ranked = rank(candidates)
            total = len(ranked)
            chunk = ranked[offset : offset + request.limit]
            products = self.store.fetch_by_ids([c.product_id for c in chunk])
            items = [
                PageItem(products[c.product_id], c.match_type, c.match_score)
                for c in chunk
                if c.product_id in products
            ]
        elif plan.classified.ranked and not by_id:
            total, items = 0, []
        else:
            if plan.classified.ranked:
                conditions.append(self.store.restrict_to_ids(by_id))
            total = self.store.count(conditions)
            rows = self.store.offset_window(conditions, plan.sort, offset=offset, limit=request.limit)
            items = [self._item(p, by_id) for p in rows]

        return ProductOffsetPage(
            items=items,
            total_count=total,
            total_pages=math.ceil(total / request.limit) if total else 0,
            current_page=page,
        )

    @staticmethod
    def _item(product: Product, by_id: dict[str, Candidate]) -> PageItem:
        candidate = by_id.get(product.id)
        if candidate is None:
            return PageItem(product)
        return PageItem(product, candidate.match_type, candidate.match_score)
