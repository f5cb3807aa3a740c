from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db
from app.main import app


@pytest.fixture()
def client(db_session):
    def _override():
        yield db_session

    app.dependency_overrides[get_db] = _override
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_cursor_page_contract(client, catalog):
    res = client.get(f"/v1/shops/{catalog.shop.id}/products", params={"query": "apple", "limit": 2})
    assert res.status_code == 200
    assert res.headers["x-request-id"]
    body = res.json()

    assert set(body) == {"items", "nextCursor", "prevCursor", "hasNextPage", "hasPrevPage"}
    assert body["hasNextPage"] is True
    assert body["hasPrevPage"] is False
    first = body["items"][0]
    assert first["productId"] == catalog.by_name["apple juice"].id
    assert first["matchType"] == "prefix"
    assert first["matchScore"] == 0.9
    assert first["sellingPrice"] == 130
    assert first["category"]["name"] == "Food"

    nxt = client.get(
        f"/v1/shops/{catalog.shop.id}/products",
        params={"query": "apple", "limit": 2, "cursor": body["nextCursor"]},
    ).json()
    assert [i["productId"] for i in nxt["items"]] == [catalog.by_name["green apple"].id]
    assert nxt["hasNextPage"] is False
    assert nxt["hasPrevPage"] is True


def test_unranked_listing_omits_match_fields(client, catalog):
    body = client.get(f"/v1/shops/{catalog.shop.id}/products", params={"limit": 200}).json()
    assert len(body["items"]) == 33
    assert body["hasNextPage"] is False
    assert body["items"][0]["matchType"] is None
    assert body["items"][0]["matchScore"] is None


def test_offset_pagination(client, catalog):
    body = client.get(
        f"/v1/shops/{catalog.shop.id}/products",
        params={"pagination": "offset", "page": 2, "limit": 10, "sortBy": "name", "sortOrder": "asc"},
    ).json()
    assert body["totalCount"] == 33
    assert body["totalPages"] == 4
    assert body["currentPage"] == 2
    assert len(body["items"]) == 10


@pytest.mark.parametrize(
    ("params", "code", "field"),
    [
        ({"direction": "sideways"}, "invalid_direction", "direction"),
        ({"sortBy": "relevance"}, "invalid_sort_field", "sortBy"),
        ({"sortOrder": "random"}, "invalid_sort_order", "sortOrder"),
        ({"dateRangeFilter": "soon"}, "invalid_filter", "dateRangeFilter"),
        ({"cursor": "not-a-cursor"}, "invalid_cursor", "cursor"),
    ],
)
def test_invalid_requests_return_error_body(client, catalog, params, code, field):
    res = client.get(f"/v1/shops/{catalog.shop.id}/products", params=params)
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == code
    assert body["field"] == field
    assert body["detail"]


def test_unit_counts(client, catalog):
    body = client.get(f"/v1/shops/{catalog.shop.id}/products/units").json()
    assert body == [{"unit": "pcs", "count": 25}, {"unit": "kg", "count": 5}, {"unit": "box", "count": 3}]


def test_check_name(client, catalog):
    url = f"/v1/shops/{catalog.shop.id}/products/check-name"

    taken = client.get(url, params={"name": "  Apple   JUICE "}).json()
    assert taken == {"name": "  Apple   JUICE ", "normalized": "apple juice", "taken": True}

    own = client.get(url, params={"name": "apple juice", "excludeId": catalog.by_name["apple juice"].id}).json()
    assert own["taken"] is False

    free = client.get(url, params={"name": "mango"}).json()
    assert free["taken"] is False


def test_category_listing(client, catalog):
    body = client.get(f"/v1/shops/{catalog.shop.id}/categories").json()
    assert set(body) == {"items", "nextCursor", "prevCursor", "hasNextPage", "hasPrevPage"}
    assert [(i["name"], i["productCount"]) for i in body["items"]] == [("Food", 5), ("Hardware", 3)]
    assert body["items"][0]["matchType"] is None

    ranked = client.get(f"/v1/shops/{catalog.shop.id}/categories", params={"query": "hard", "limit": 1}).json()
    assert ranked["items"][0]["categoryId"] == catalog.by_name["product-1"].category_id
    assert ranked["items"][0]["matchType"] == "prefix"
    assert ranked["hasPrevPage"] is False

    bad = client.get(f"/v1/shops/{catalog.shop.id}/categories", params={"cursor": "garbage"})
    assert bad.status_code == 400
