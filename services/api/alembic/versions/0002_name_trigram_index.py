"""trigram indexes on normalized product names and skus

Revision ID: 0002_name_trigram_index
Revises: 0001_initial
Create Date: 2026-10-03 00:00:00
"""

from typing import Sequence, Union

from alembic import op


revision: str = "0002_name_trigram_index"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_INDEXES = {
    "ix_products_name_normalized_trgm": "name_normalized",
    "ix_products_sku_normalized_trgm": "sku_normalized",
}


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    for name, column in _INDEXES.items():
        op.create_index(
            name,
            "products",
            [column],
            postgresql_using="gin",
            postgresql_ops={column: "gin_trgm_ops"},
        )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    for name in _INDEXES:
        op.drop_index(name, table_name="products")
