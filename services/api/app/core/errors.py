from __future__ import annotations


class CatalogError(Exception):
    code = "catalog_error"
    status_code = 400

    def __init__(self, detail: str, *, field: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.detail, "field": self.field}


class InvalidDirection(CatalogError):
    code = "invalid_direction"


class InvalidSortField(CatalogError):
    code = "invalid_sort_field"


class InvalidSortOrder(CatalogError):
    code = "invalid_sort_order"


class InvalidFilter(CatalogError):
    code = "invalid_filter"


class InvalidCursor(CatalogError):
    """The cursor is malformed or was issued for a different query; restart from page one."""

    code = "invalid_cursor"


class StoreUnavailable(CatalogError):
    code = "store_unavailable"
    status_code = 503
