from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import InvalidCursor, StoreUnavailable
from app.models import Product
from app.services.product_pages import ProductPager
from app.services.product_query import SortField, SortOrder, SortSpec, build_page_request
from app.services.product_store import ProductStore
from search_core.matchers import MatchType

SECRET = "integration-secret-0123456789abcdef"


def _pager(db_session) -> ProductPager:
    return ProductPager(db_session, cursor_secret=SECRET)


def _ids(page) -> list[str]:
    return [item.product.id for item in page.items]


def _walk_forward(pager, shop_id, **params) -> list[str]:
    seen: list[str] = []
    cursor = None
    while True:
        page = pager.page(build_page_request(shop_id, cursor=cursor, **params))
        seen.extend(_ids(page))
        if not page.has_next:
            return seen
        cursor = page.next_cursor


def _walk_backward(pager, shop_id, **params) -> list[str]:
    seen: list[str] = []
    cursor = None
    while True:
        page = pager.page(build_page_request(shop_id, cursor=cursor, direction="backward", **params))
        seen[:0] = _ids(page)
        if not page.has_prev:
            return seen
        cursor = page.prev_cursor


def test_empty_query_lists_newest_first(db_session, catalog):
    pager = _pager(db_session)
    implicit = pager.page(build_page_request(catalog.shop.id, limit=100))
    explicit = pager.page(build_page_request(catalog.shop.id, sort_by="createdAt", sort_order="desc", limit=100))

    assert _ids(implicit) == _ids(explicit) == catalog.newest_first()
    assert all(item.match_type is None and item.match_score is None for item in implicit.items)
    assert not implicit.has_next and not implicit.has_prev


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"sort_by": "name", "sort_order": "asc"},
        {"sort_by": "sellingPrice", "sort_order": "desc"},
        {"sort_by": "category", "sort_order": "asc"},
        {"query": "item"},
        {"query": "apple", "sort_by": "stock", "sort_order": "asc"},
    ],
)
def test_forward_pages_are_complete_and_disjoint(db_session, catalog, params):
    pager = _pager(db_session)
    everything = _ids(pager.page(build_page_request(catalog.shop.id, limit=100, **params)))
    walked = _walk_forward(pager, catalog.shop.id, limit=4, **params)

    assert walked == everything
    assert len(set(walked)) == len(walked)


@pytest.mark.parametrize(
    "params",
    [{}, {"sort_by": "name", "sort_order": "asc"}, {"sort_by": "category"}, {"query": "item"}],
)
def test_backward_walk_mirrors_forward_walk(db_session, catalog, params):
    pager = _pager(db_session)
    forward = _walk_forward(pager, catalog.shop.id, limit=7, **params)
    backward = _walk_backward(pager, catalog.shop.id, limit=7, **params)
    assert backward == forward


def test_prev_cursor_returns_to_previous_page(db_session, catalog):
    pager = _pager(db_session)
    first = pager.page(build_page_request(catalog.shop.id, query="item", limit=5))
    second = pager.page(build_page_request(catalog.shop.id, query="item", limit=5, cursor=first.next_cursor))
    back = pager.page(
        build_page_request(catalog.shop.id, query="item", limit=5, cursor=second.prev_cursor, direction="backward")
    )

    assert second.has_prev and second.has_next
    assert _ids(back) == _ids(first)
    assert back.has_next and not back.has_prev


def test_typo_query_ranks_by_trigram(db_session, catalog):
    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="prodct"))

    assert _ids(page) == catalog.ids("product-1", "product-2", "product-3")
    assert {item.match_type for item in page.items} == {MatchType.TRIGRAM}
    assert all(item.match_score == 0.4167 for item in page.items)


def test_short_query_reaches_product_by_initials(db_session, catalog):
    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="p1"))

    assert _ids(page) == catalog.ids("product-1")
    assert page.items[0].match_type is MatchType.ACRONYM


def test_literal_matches_rank_prefix_over_substring(db_session, catalog):
    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="Apple"))

    assert _ids(page) == catalog.ids("apple juice", "apple pie", "green apple")
    assert [item.match_type for item in page.items] == [MatchType.PREFIX, MatchType.PREFIX, MatchType.SUBSTRING]
    assert [item.match_score for item in page.items] == [0.9, 0.9, 0.75]


def test_pinned_sort_keeps_match_metadata(db_session, catalog):
    page = _pager(db_session).page(
        build_page_request(catalog.shop.id, query="apple", sort_by="sellingPrice", sort_order="asc")
    )
    assert _ids(page) == catalog.ids("apple juice", "green apple", "apple pie")
    assert page.items[1].match_type is MatchType.SUBSTRING


def test_disabled_fuzzy_search_filters_by_name(db_session, catalog):
    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="apple", enable_fuzzy=False))

    assert _ids(page) == catalog.ids("apple pie", "green apple", "apple juice")
    assert all(item.match_type is None for item in page.items)


def test_query_without_matches_is_an_empty_page(db_session, catalog):
    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="zzzzqqq"))
    assert page.items == []
    assert page.next_cursor is None and page.prev_cursor is None
    assert not page.has_next and not page.has_prev


def test_shop_scope_and_inactive_products(db_session, catalog):
    pager = _pager(db_session)
    other = pager.page(build_page_request(catalog.other_shop.id, query="apple"))
    assert len(other.items) == 1
    assert other.items[0].product.shop_id == catalog.other_shop.id

    mine = _walk_forward(pager, catalog.shop.id, query="apple", limit=2)
    assert sorted(mine) == sorted(catalog.ids("apple juice", "apple pie", "green apple"))


def test_filters_are_applied_before_ranking(db_session, catalog):
    pager = _pager(db_session)
    food = catalog.by_name["apple juice"].category_id

    by_unit = pager.page(build_page_request(catalog.shop.id, unit_filter="box,kg", limit=100))
    assert len(by_unit.items) == 8

    by_category = pager.page(build_page_request(catalog.shop.id, query="apple", category_filter=food))
    assert len(by_category.items) == 3

    by_name = pager.page(build_page_request(catalog.shop.id, name_filter="ITEM 1", limit=100))
    assert len(by_name.items) == 10

    window = pager.page(
        build_page_request(
            catalog.shop.id,
            date_range_filter=f"{int(datetime(2026, 1, 1, 0, 3, tzinfo=timezone.utc).timestamp() * 1000)},"
            f"{int(datetime(2026, 1, 1, 0, 5, tzinfo=timezone.utc).timestamp() * 1000)}",
        )
    )
    assert _ids(window) == catalog.ids("chocolate bar", "banana split", "apple juice")


def test_cursor_from_another_query_is_rejected(db_session, catalog):
    pager = _pager(db_session)
    first = pager.page(build_page_request(catalog.shop.id, query="item", limit=5))

    with pytest.raises(InvalidCursor):
        pager.page(build_page_request(catalog.shop.id, query="itme", limit=5, cursor=first.next_cursor))
    with pytest.raises(InvalidCursor):
        pager.page(build_page_request(catalog.shop.id, query="item", sort_by="name", cursor=first.next_cursor))
    with pytest.raises(InvalidCursor):
        pager.page(build_page_request(catalog.shop.id, query="item", limit=5, cursor="garbage"))


def test_offset_mode_reports_totals(db_session, catalog):
    pager = _pager(db_session)
    page = pager.page_offset(build_page_request(catalog.shop.id, limit=10), page=4)

    assert page.total_count == 33
    assert page.total_pages == 4
    assert page.current_page == 4
    assert [item.product.id for item in page.items] == catalog.newest_first()[30:]

    ranked = pager.page_offset(build_page_request(catalog.shop.id, query="apple", limit=2), page=2)
    assert ranked.total_count == 3
    assert [item.product.id for item in ranked.items] == catalog.ids("green apple")


def test_store_failure_surfaces_as_unavailable(db_session, catalog, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "scalars", broken)
    monkeypatch.setattr(db_session, "execute", broken)

    with pytest.raises(StoreUnavailable):
        _pager(db_session).page(build_page_request(catalog.shop.id))
    with pytest.raises(StoreUnavailable):
        _pager(db_session).page(build_page_request(catalog.shop.id, query="apple"))


def test_unencodable_query_yields_empty_page(db_session, catalog, caplog):
    caplog.set_level(logging.WARNING)
    pager = _pager(db_session)

    page = pager.page(build_page_request(catalog.shop.id, query="prod\ud800uct"))
    assert page.items == []
    assert not page.has_next and not page.has_prev
    messages = {r.getMessage() for r in caplog.records}
    assert {"literal_pushdown_skipped", "matcher_failed"} <= messages

    short = pager.page(build_page_request(catalog.shop.id, query="p\ud800"))
    assert short.items == []

    plain = pager.page(build_page_request(catalog.shop.id, query="prod\ud800uct", enable_fuzzy=False))
    assert plain.items == []

    by_name = pager.page(build_page_request(catalog.shop.id, name_filter="item\udfff", limit=100))
    assert by_name.items == []

    offset = pager.page_offset(build_page_request(catalog.shop.id, query="apple\ud800"), page=1)
    assert offset.total_count == 0


def test_query_matches_sku(db_session, catalog):
    banana = catalog.by_name["banana split"]
    banana.sku = "QZX-9931"
    db_session.commit()
    pager = _pager(db_session)

    exact = pager.page(build_page_request(catalog.shop.id, query="QZX-9931"))
    assert _ids(exact) == [banana.id]
    assert exact.items[0].match_type is MatchType.EXACT
    assert exact.items[0].match_score == 1.0

    prefix = pager.page(build_page_request(catalog.shop.id, query="qzx"))
    assert _ids(prefix) == [banana.id]
    assert prefix.items[0].match_type is MatchType.PREFIX

    plain = pager.page(build_page_request(catalog.shop.id, query="qzx", enable_fuzzy=False))
    assert _ids(plain) == [banana.id]
    assert plain.items[0].match_type is None


def test_stronger_field_wins_between_name_and_sku(db_session, catalog):
    green = catalog.by_name["green apple"]
    green.sku = "APPLE-77"
    db_session.commit()

    page = _pager(db_session).page(build_page_request(catalog.shop.id, query="apple"))
    by_id = {item.product.id: item for item in page.items}

    # substring on the name, prefix on the sku
    assert by_id[green.id].match_type is MatchType.PREFIX
    assert _ids(page) == catalog.ids("apple juice", "apple pie", "green apple")


def test_large_candidate_sets_are_restricted_inline(db_session, catalog):
    store = ProductStore(db_session)
    real = catalog.ids("apple juice", "apple pie", "green apple")
    ids = [f"missing-{n:06d}" for n in range(40_000)] + real

    conditions = [Product.shop_id == catalog.shop.id, ProductStore.restrict_to_ids(ids)]
    assert store.count(conditions) == 3
    window = store.keyset_window(conditions, SortSpec(SortField.NAME, SortOrder.ASC), limit=10)
    assert [p.id for p in window.rows] == catalog.ids("apple juice", "apple pie", "green apple")
