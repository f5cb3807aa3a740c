from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum

from app.core.config import settings
from app.core.errors import InvalidDirection, InvalidFilter, InvalidSortField, InvalidSortOrder
from search_core.classifier import ClassifiedQuery
from search_core.ranker import Direction


class SortField(str, Enum):
    RELEVANCE = "relevance"
    CREATED_AT = "createdAt"
    NAME = "name"
    SELLING_PRICE = "sellingPrice"
    PURCHASE_PRICE = "purchasePrice"
    STOCK = "stock"
    CATEGORY = "category"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Relevance is implied by an active query; callers cannot request it by name.
REQUESTABLE_SORT_FIELDS = [f for f in SortField if f is not SortField.RELEVANCE]


@dataclass(frozen=True, slots=True)
class SortSpec:
    field: SortField
    order: SortOrder


@dataclass(frozen=True, slots=True)
class ProductFilters:
    name: str = ""
    category_id: str | None = None
    units: tuple[str, ...] = ()
    created_from: datetime | None = None
    created_to: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "category_id": self.category_id,
            "units": sorted(self.units),
            "created_from": self.created_from.isoformat() if self.created_from else None,
            "created_to": self.created_to.isoformat() if self.created_to else None,
        }


@dataclass(frozen=True, slots=True)
class ProductPageRequest:
    shop_id: str
    query: str = ""
    enable_fuzzy: bool = True
    sort_by: SortField | None = None
    sort_order: SortOrder = SortOrder.DESC
    filters: ProductFilters = field(default_factory=ProductFilters)
    cursor: str | None = None
    direction: Direction = Direction.FORWARD
    limit: int = 10


def parse_direction(value: str | None) -> Direction:
    if not value:
        return Direction.FORWARD
    try:
        return Direction(value)
    except ValueError:
        raise InvalidDirection(
            f"Invalid direction {value!r}. Must be 'forward' or 'backward'", field="direction"
        ) from None


def parse_sort_field(value: str | None) -> SortField | None:
    if not value:
        return None
    for candidate in REQUESTABLE_SORT_FIELDS:
        if candidate.value == value:
            return candidate
    allowed = ", ".join(f.value for f in REQUESTABLE_SORT_FIELDS)
    raise InvalidSortField(f"Invalid sortBy {value!r}. Must be one of: {allowed}", field="sortBy")


def parse_sort_order(value: str | None) -> SortOrder:
    if not value:
        return SortOrder.DESC
    try:
        return SortOrder(value.lower())
    except ValueError:
        raise InvalidSortOrder(f"Invalid sortOrder {value!r}. Must be 'asc' or 'desc'", field="sortOrder") from None


def parse_units(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(sorted({u.strip() for u in value.split(",") if u.strip()}))


def _parse_instant(raw: str, *, end_of_day: bool) -> datetime:
    raw = raw.strip()
    if raw.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    parsed = datetime.fromisoformat(raw)
    if end_of_day and len(raw) == 10:
        parsed = datetime.combine(parsed.date(), time.max, tzinfo=parsed.tzinfo)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed


def parse_date_range(value: str | None) -> tuple[datetime | None, datetime | None]:
    """
    `"<from>,<to>"` with either side optional. Each side is epoch milliseconds or
    ISO-8601; a bare date on the `to` side covers that whole day.
    """
    if not value or not value.strip():
        return None, None
    parts = value.split(",")
    if len(parts) > 2:
        raise InvalidFilter("dateRangeFilter takes at most two values: '<from>,<to>'", field="dateRangeFilter")
    raw_from = parts[0]
    raw_to = parts[1] if len(parts) == 2 else ""
    try:
        created_from = _parse_instant(raw_from, end_of_day=False) if raw_from.strip() else None
        created_to = _parse_instant(raw_to, end_of_day=True) if raw_to.strip() else None
    except (ValueError, OverflowError, OSError) as exc:
        raise InvalidFilter(f"Invalid dateRangeFilter {value!r}: {exc}", field="dateRangeFilter") from exc
    if created_from and created_to and created_from.replace(tzinfo=None) > created_to.replace(tzinfo=None):
        raise InvalidFilter("dateRangeFilter starts after it ends", field="dateRangeFilter")
    return created_from, created_to


def clamp_limit(value: int | None) -> int:
    if value is None:
        return settings.default_page_limit
    return max(1, min(int(value), settings.max_page_limit))


def build_page_request(
    shop_id: str,
    *,
    query: str | None = "",
    enable_fuzzy: bool | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    name_filter: str | None = None,
    category_filter: str | None = None,
    unit_filter: str | None = None,
    date_range_filter: str | None = None,
    cursor: str | None = None,
    direction: str | None = None,
    limit: int | None = None,
) -> ProductPageRequest:
    """Validate raw request parameters. Raises before anything touches the store."""
    created_from, created_to = parse_date_range(date_range_filter)
    return ProductPageRequest(
        shop_id=shop_id,
        query=query or "",
        enable_fuzzy=settings.fuzzy_search_enabled if enable_fuzzy is None else enable_fuzzy,
        sort_by=parse_sort_field(sort_by),
        sort_order=parse_sort_order(sort_order),
        filters=ProductFilters(
            name=(name_filter or "").strip(),
            category_id=(category_filter or "").strip() or None,
            units=parse_units(unit_filter),
            created_from=created_from,
            created_to=created_to,
        ),
        cursor=cursor or None,
        direction=parse_direction(direction),
        limit=clamp_limit(limit),
    )


def effective_sort(request: ProductPageRequest, classified: ClassifiedQuery) -> SortSpec:
    if request.sort_by is not None:
        return SortSpec(request.sort_by, request.sort_order)
    if classified.ranked:
        return SortSpec(SortField.RELEVANCE, SortOrder.DESC)
    return SortSpec(SortField.CREATED_AT, request.sort_order)


def digest(payload: dict) -> str:
    """SHA-256 over canonical JSON; binds cursors to the listing they came from."""
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(blob.encode("utf-8", "surrogatepass")).hexdigest()


def fingerprint(request: ProductPageRequest, classified: ClassifiedQuery, sort: SortSpec) -> str:
    payload = {
        "shop": request.shop_id,
        "q": classified.text,
        "mode": classified.mode.value,
        "filters": request.filters.as_dict(),
        "sort": [sort.field.value, sort.order.value],
    }
    return digest(payload)
