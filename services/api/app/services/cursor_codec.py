from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import jwt

from app.core.config import settings
from app.core.errors import InvalidCursor
from app.models import Product
from app.services.product_query import SortField
from search_core.aggregator import Candidate
from search_core.ranker import Direction, relevance_value

logger = logging.getLogger(__name__)

CURSOR_VERSION = 1
_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class Cursor:
    sort_field: SortField
    sort_value: Any
    row_id: str
    direction: Direction
    fingerprint: str


def sort_value_of(field: SortField, product: Product, candidate: Candidate | None = None) -> Any:
    """The ranking key value a boundary row carries for the given sort field."""
    if field is SortField.RELEVANCE:
        if candidate is None:
            raise ValueError("relevance cursors need the ranked candidate")
        return relevance_value(candidate)
    if field is SortField.CREATED_AT:
        return product.created_at
    if field is SortField.NAME:
        return product.name_normalized
    if field is SortField.SELLING_PRICE:
        return product.selling_price
    if field is SortField.PURCHASE_PRICE:
        return product.purchase_price
    if field is SortField.STOCK:
        return product.stock
    return product.category.name if product.category is not None else ""


def _dump_value(field: SortField, value: Any) -> Any:
    if field is SortField.CREATED_AT:
        return value.isoformat()
    return value


def _load_value(field: SortField, raw: Any) -> Any:
    if field is SortField.RELEVANCE:
        if not isinstance(raw, list) or len(raw) != 3:
            raise ValueError("relevance value must be [score, priority, name]")
        score, priority, name = raw
        if not isinstance(score, (int, float)) or not isinstance(priority, int) or not isinstance(name, str):
            raise ValueError("relevance value has wrong types")
        return [float(score), priority, name]
    if field is SortField.CREATED_AT:
        return datetime.fromisoformat(raw)
    if field in (SortField.SELLING_PRICE, SortField.PURCHASE_PRICE, SortField.STOCK):
        if not isinstance(raw, int) or isinstance(raw, bool):
            raise ValueError(f"{field.value} value must be an integer")
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"{field.value} value must be a string")
    return raw


def encode_cursor(cursor: Cursor, *, secret: str | None = None) -> str:
    payload = {
        "v": CURSOR_VERSION,
        "sf": cursor.sort_field.value,
        "sv": _dump_value(cursor.sort_field, cursor.sort_value),
        "id": cursor.row_id,
        "dir": cursor.direction.value,
        "fp": cursor.fingerprint,
    }
    return jwt.encode(payload, secret or settings.cursor_secret, algorithm=_ALGORITHM)


def build_cursor(
    *,
    sort_field: SortField,
    product: Product,
    direction: Direction,
    fingerprint: str,
    candidate: Candidate | None = None,
    secret: str | None = None,
) -> str:
    return encode_cursor(
        Cursor(
            sort_field=sort_field,
            sort_value=sort_value_of(sort_field, product, candidate),
            row_id=product.id,
            direction=direction,
            fingerprint=fingerprint,
        ),
        secret=secret,
    )


def decode_cursor(
    token: str,
    *,
    expected_fingerprint: str,
    secret: str | None = None,
) -> Cursor:
    try:
        payload = jwt.decode(token, secret or settings.cursor_secret, algorithms=[_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        logger.info("cursor_rejected", extra={"reason": "malformed"})
        raise InvalidCursor("Cursor is malformed; restart pagination without a cursor", field="cursor") from exc

    if payload.get("v") != CURSOR_VERSION:
        logger.info("cursor_rejected", extra={"reason": "version"})
        raise InvalidCursor("Cursor version is not supported; restart pagination", field="cursor")
    if payload.get("fp") != expected_fingerprint:
        logger.info("cursor_rejected", extra={"reason": "fingerprint"})
        raise InvalidCursor(
            "Cursor was issued for a different query, filter or sort; restart pagination", field="cursor"
        )

    try:
        sort_field = SortField(payload["sf"])
        cursor = Cursor(
            sort_field=sort_field,
            sort_value=_load_value(sort_field, payload["sv"]),
            row_id=str(payload["id"]),
            direction=Direction(payload["dir"]),
            fingerprint=payload["fp"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.info("cursor_rejected", extra={"reason": "payload"})
        raise InvalidCursor("Cursor payload is invalid; restart pagination", field="cursor") from exc
    return cursor
