from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.context import request_id_ctx, shop_id_ctx


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        rid_token = request_id_ctx.set(rid)
        # endpoints fill the shop in once the path is resolved
        shop_token = shop_id_ctx.set(None)
        try:
            response: Response = await call_next(request)
            response.headers["x-request-id"] = rid
            return response
        finally:
            shop_id_ctx.reset(shop_token)
            request_id_ctx.reset(rid_token)
