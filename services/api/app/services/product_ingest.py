from __future__ import annotations

import csv
import logging
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Category, Product, Shop, Supplier
from search_core.normalize import normalize_text

logger = logging.getLogger(__name__)


def _int(value: str | None, default: int | None = 0) -> int | None:
    if value is None or not value.strip():
        return default
    return int(float(value))


def get_or_create_shop(db: Session, name: str) -> Shop:
    shop = db.scalar(select(Shop).where(Shop.name == name))
    if shop is None:
        shop = Shop(name=name)
        db.add(shop)
        db.flush()
    return shop


def _category(db: Session, cache: dict[str, Category], shop_id: str, name: str | None) -> Category | None:
    name = (name or "").strip()
    if not name:
        return None
    if name not in cache:
        category = db.scalar(select(Category).where(Category.shop_id == shop_id, Category.name == name))
        if category is None:
            category = Category(shop_id=shop_id, name=name)
            db.add(category)
            db.flush()
        cache[name] = category
    return cache[name]


def _supplier(db: Session, cache: dict[str, Supplier], shop_id: str, name: str | None) -> Supplier | None:
    name = (name or "").strip()
    if not name:
        return None
    if name not in cache:
        supplier = db.scalar(select(Supplier).where(Supplier.shop_id == shop_id, Supplier.name == name))
        if supplier is None:
            supplier = Supplier(shop_id=shop_id, name=name)
            db.add(supplier)
            db.flush()
        cache[name] = supplier
    return cache[name]


def ingest_products_csv(db: Session, shop_id: str, csv_path: str) -> int:
    """
    Upsert products from a CSV with columns `name, sku, selling_price,
    purchase_price, stock, reorder_point, unit, category, supplier`.

    Rows are matched to existing products by normalized name within the shop.
    """
    path = Path(csv_path)
    if not path.exists():
        logger.warning("product_csv_missing", extra={"path": str(path)})
        return 0

    categories: dict[str, Category] = {}
    suppliers: dict[str, Supplier] = {}
    upserted = 0
    with path.open("r", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            name = (row.get("name") or "").strip()
            if not name:
                continue
            category = _category(db, categories, shop_id, row.get("category"))
            supplier = _supplier(db, suppliers, shop_id, row.get("supplier"))

            product = db.scalar(
                select(Product).where(Product.shop_id == shop_id, Product.name_normalized == normalize_text(name))
            )
            if product is None:
                product = Product(shop_id=shop_id, name=name)
                db.add(product)
            product.name = name
            product.sku = row.get("sku") or None
            product.selling_price = _int(row.get("selling_price"))
            product.purchase_price = _int(row.get("purchase_price"))
            product.stock = _int(row.get("stock"))
            product.reorder_point = _int(row.get("reorder_point"), None)
            product.unit = (row.get("unit") or "").strip() or None
            product.category_id = category.id if category else None
            product.supplier_id = supplier.id if supplier else None
            # flush per row so a repeated name later in the file updates instead of colliding
            db.flush()
            upserted += 1

    db.commit()
    logger.info("products_ingested", extra={"shop": shop_id, "count": upserted, "path": str(path)})
    return upserted
