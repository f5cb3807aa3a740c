from __future__ import annotations

from fastapi import APIRouter

from app.api.v1.endpoints import categories, products

api_router = APIRouter(prefix="/v1")
api_router.include_router(products.router, tags=["products"])
api_router.include_router(categories.router, tags=["categories"])
