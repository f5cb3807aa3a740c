from __future__ import annotations

from contextvars import ContextVar

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
shop_id_ctx: ContextVar[str | None] = ContextVar("shop_id", default=None)
