from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CURSOR_SECRET", "test-cursor-secret-0123456789abcdef")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.models import Category, Product, Shop

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

# index in this list drives created_at (+i minutes) and selling_price (100 + 10*i)
CATALOG = [
    ("product-1", "box", "Hardware"),
    ("product-2", "box", "Hardware"),
    ("product-3", "box", "Hardware"),
    ("apple juice", "kg", "Food"),
    ("banana split", "kg", "Food"),
    ("chocolate bar", "kg", "Food"),
    ("green apple", "kg", "Food"),
    ("apple pie", "kg", "Food"),
] + [(f"item {n:02d}", "pcs", None) for n in range(1, 26)]


@dataclass
class SeededCatalog:
    shop: Shop
    other_shop: Shop
    by_name: dict[str, Product] = field(default_factory=dict)

    def ids(self, *names: str) -> list[str]:
        return [self.by_name[n].id for n in names]

    def newest_first(self) -> list[str]:
        ordered = sorted(self.by_name.values(), key=lambda p: p.created_at, reverse=True)
        return [p.id for p in ordered]


@pytest.fixture()
def db_session(tmp_path: Path):
    db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite+pysqlite:///{db_path}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def catalog(db_session) -> SeededCatalog:
    shop = Shop(name="Corner Store")
    other = Shop(name="Other Store")
    db_session.add_all([shop, other])
    db_session.flush()

    categories: dict[str, Category] = {}
    for name in ("Hardware", "Food"):
        categories[name] = Category(shop_id=shop.id, name=name)
        db_session.add(categories[name])
    db_session.flush()

    seeded = SeededCatalog(shop=shop, other_shop=other)
    for i, (name, unit, category) in enumerate(CATALOG):
        product = Product(
            shop_id=shop.id,
            name=name,
            selling_price=100 + 10 * i,
            purchase_price=50 + 5 * i,
            stock=i,
            unit=unit,
            category_id=categories[category].id if category else None,
            created_at=BASE_TIME + timedelta(minutes=i),
        )
        db_session.add(product)
        seeded.by_name[name] = product

    db_session.add_all(
        [
            Product(
                shop_id=shop.id,
                name="archived apple",
                unit="kg",
                is_active=False,
                created_at=BASE_TIME + timedelta(days=1),
            ),
            Product(shop_id=other.id, name="apple juice", unit="kg", created_at=BASE_TIME),
        ]
    )
    db_session.commit()
    return seeded
