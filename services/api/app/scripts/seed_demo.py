#!/usr/bin/env python3
from __future__ import annotations

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.product_ingest import get_or_create_shop, ingest_products_csv


def main() -> None:
    db = SessionLocal()
    try:
        shop = get_or_create_shop(db, settings.demo_shop_name)
        db.commit()
        count = ingest_products_csv(db, shop.id, settings.product_csv_path)
        print(f"seeded shop={shop.name} id={shop.id} products={count}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
