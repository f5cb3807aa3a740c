from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Category
from app.services.category_store import CategoryStore
from app.services.cursor_codec import Cursor, decode_cursor, encode_cursor
from app.services.product_query import SortField, clamp_limit, digest, parse_direction
from search_core.aggregator import Candidate, aggregate
from search_core.classifier import ClassifiedQuery, classify
from search_core.matchers import MatchType
from search_core.ranker import Direction, key_from_value, rank, relevance_value, window

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CategoryPageRequest:
    shop_id: str
    query: str = ""
    enable_fuzzy: bool = True
    cursor: str | None = None
    direction: Direction = Direction.FORWARD
    limit: int = 10


@dataclass(slots=True)
class CategoryItem:
    category: Category
    product_count: int = 0
    match_type: MatchType | None = None
    match_score: float | None = None


@dataclass(slots=True)
class CategoryPage:
    items: list[CategoryItem]
    next_cursor: str | None
    prev_cursor: str | None
    has_next: bool
    has_prev: bool


def build_category_request(
    shop_id: str,
    *,
    query: str | None = "",
    enable_fuzzy: bool | None = None,
    cursor: str | None = None,
    direction: str | None = None,
    limit: int | None = None,
) -> CategoryPageRequest:
    return CategoryPageRequest(
        shop_id=shop_id,
        query=query or "",
        enable_fuzzy=settings.fuzzy_search_enabled if enable_fuzzy is None else enable_fuzzy,
        cursor=cursor or None,
        direction=parse_direction(direction),
        limit=clamp_limit(limit),
    )


def category_fingerprint(request: CategoryPageRequest, classified: ClassifiedQuery) -> str:
    return digest(
        {"resource": "categories", "shop": request.shop_id, "q": classified.text, "mode": classified.mode.value}
    )


class CategoryPager:
    """
    Category listing: by name when there is no query, by relevance otherwise.

    A shop holds few categories, so every strategy runs in-process over the
    scanned names.
    """

    def __init__(self, db: Session, *, cursor_secret: str | None = None) -> None:
        self.store = CategoryStore(db)
        self.cursor_secret = cursor_secret

    def page(self, request: CategoryPageRequest) -> CategoryPage:
        classified = classify(request.query, enable_fuzzy=request.enable_fuzzy)
        sort_field = SortField.RELEVANCE if classified.ranked else SortField.NAME
        fp = category_fingerprint(request, classified)
        boundary: Cursor | None = None
        if request.cursor:
            boundary = decode_cursor(request.cursor, expected_fingerprint=fp, secret=self.cursor_secret)

        conditions = self.store.scope(request.shop_id)
        by_id: dict[str, Candidate] = {}
        if classified.ranked:
            candidates = aggregate(self.store.scan_names(conditions), classified)
            by_id = {c.product_id: c for c in candidates}
            after = key_from_value(boundary.sort_value, boundary.row_id) if boundary else None
            win = window(rank(candidates), limit=request.limit, direction=request.direction, after=after)
            found = self.store.fetch_by_ids([c.product_id for c in win.items])
            categories = [found[c.product_id] for c in win.items if c.product_id in found]
            has_more = win.has_more
        else:
            rows = self.store.keyset_window(
                conditions,
                limit=request.limit,
                direction=request.direction,
                boundary=(boundary.sort_value, boundary.row_id) if boundary else None,
            )
            categories, has_more = rows.rows, rows.has_more

        counts = self.store.product_counts([c.id for c in categories])
        items = []
        for category in categories:
            candidate = by_id.get(category.id)
            items.append(
                CategoryItem(
                    category=category,
                    product_count=counts.get(category.id, 0),
                    match_type=candidate.match_type if candidate else None,
                    match_score=candidate.match_score if candidate else None,
                )
            )

        if request.direction is Direction.FORWARD:
            has_next, has_prev = has_more, boundary is not None
        else:
            has_next, has_prev = boundary is not None, has_more

        next_cursor = prev_cursor = None
        if items:
            next_cursor = self._cursor(sort_field, items[-1].category, Direction.FORWARD, fp, by_id)
            prev_cursor = self._cursor(sort_field, items[0].category, Direction.BACKWARD, fp, by_id)

        logger.info(
            "category_page_served",
            extra={"mode": classified.mode.value, "direction": request.direction.value, "count": len(items)},
        )
        return CategoryPage(
            items=items,
            next_cursor=next_cursor,
            prev_cursor=prev_cursor,
            has_next=has_next,
            has_prev=has_prev,
        )

    def _cursor(
        self,
        sort_field: SortField,
        category: Category,
        direction: Direction,
        fp: str,
        by_id: dict[str, Candidate],
    ) -> str:
        if sort_field is SortField.RELEVANCE:
            value = relevance_value(by_id[category.id])
        else:
            value = category.name_normalized
        return encode_cursor(
            Cursor(sort_field=sort_field, sort_value=value, row_id=category.id, direction=direction, fingerprint=fp),
            secret=self.cursor_secret,
        )
