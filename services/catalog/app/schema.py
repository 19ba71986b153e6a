"""
Catalog Service — テーブル定義

カタログ DB は products と categories の 2 テーブルのみ。
在庫は別サービスの DB にあるため、ここに在庫カラムは持たない
(Database per Service パターン)。
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    true,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

categories = Table(
    "categories",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

products = Table(
    "products",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, index=True),
    Column("description", Text, nullable=False, default=""),
    Column("price", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("category_id", String(36), ForeignKey("categories.id"), nullable=False),
    CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
)


async def init_schema(engine: AsyncEngine) -> None:
    """テーブルが無ければ作成する。"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
