"""
Catalog Service — カタログストア (products / categories の唯一の読み書き口)

1 メソッド = 1 セッション = 1 レコード操作。複数レコードにまたがる
トランザクションは持たない。在庫サービスとの整合性は Saga 側の
補償トランザクションで保つ。

失敗の種類:
  - 読み取りで見つからない   → None を返す
  - 更新/削除で見つからない  → RecordNotFound
  - 一意制約・外部キー違反   → ConstraintViolation
  - それ以外の DB エラー     → StoreError
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import Category, Product, ProductFilter
from .schema import categories, products

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


class RecordNotFound(StoreError):
    pass


class ConstraintViolation(StoreError):
    pass


def _product_select():
    return select(
        products,
        categories.c.name.label("category_name"),
        categories.c.description.label("category_description"),
    ).select_from(
        products.outerjoin(categories, products.c.category_id == categories.c.id)
    )


def _row_to_product(row) -> Product:
    category = None
    if row.category_name is not None:
        category = Category(
            id=row.category_id,
            name=row.category_name,
            description=row.category_description,
        )
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        price=float(row.price),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        category_id=row.category_id,
        category=category,
    )


def _row_to_category(row) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
    )


class CatalogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as e:
            raise ConstraintViolation(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        except (OSError, asyncio.TimeoutError) as e:
            # asyncpg は接続失敗を SQLAlchemy 例外に包まずに送出することがある
            raise StoreError(f"Database connection failed: {e!r}") from e

    # ── Category ─────────────────────────────────

    async def get_category(self, category_id: str) -> Category | None:
        async with self._session() as session:
            result = await session.execute(
                select(categories).where(categories.c.id == category_id)
            )
            row = result.fetchone()
        return _row_to_category(row) if row else None

    async def get_category_by_name(self, name: str) -> Category | None:
        async with self._session() as session:
            result = await session.execute(
                select(categories).where(categories.c.name == name)
            )
            row = result.fetchone()
        return _row_to_category(row) if row else None

    async def list_categories(self) -> list[Category]:
        async with self._session() as session:
            result = await session.execute(
                select(categories).order_by(categories.c.name.asc())
            )
            return [_row_to_category(row) for row in result.fetchall()]

    async def create_category(self, name: str, description: str | None) -> Category:
        category = Category(
            id=str(uuid4()),
            name=name,
            description=description,
            created_at=datetime.now(timezone.utc),
        )
        async with self._session() as session:
            await session.execute(
                insert(categories).values(**category.model_dump())
            )
            await session.commit()
        return category

    # ── Product ──────────────────────────────────

    async def get_product(self, product_id: str) -> Product | None:
        async with self._session() as session:
            result = await session.execute(
                _product_select().where(products.c.id == product_id)
            )
            row = result.fetchone()
        return _row_to_product(row) if row else None

    async def get_product_by_name_contains(self, substring: str) -> Product | None:
        """商品名に substring を含む最初の商品 (大文字小文字は区別しない)。"""
        async with self._session() as session:
            result = await session.execute(
                _product_select()
                .where(products.c.name.icontains(substring, autoescape=True))
                .order_by(products.c.created_at.asc())
                .limit(1)
            )
            row = result.fetchone()
        return _row_to_product(row) if row else None

    async def list_products(
        self,
        criteria: ProductFilter | None = None,
        active_only: bool = True,
    ) -> list[Product]:
        stmt = _product_select()
        if active_only:
            stmt = stmt.where(products.c.is_active.is_(True))

        if criteria is None:
            stmt = stmt.order_by(products.c.created_at.asc())
        else:
            if criteria.category_id:
                stmt = stmt.where(products.c.category_id == criteria.category_id)
            if criteria.category_name_pattern:
                stmt = stmt.where(
                    categories.c.name.icontains(
                        criteria.category_name_pattern, autoescape=True
                    )
                )
            if criteria.name:
                stmt = stmt.where(
                    products.c.name.icontains(criteria.name, autoescape=True)
                )
            if criteria.min_price is not None:
                stmt = stmt.where(products.c.price >= criteria.min_price)
            if criteria.max_price is not None:
                stmt = stmt.where(products.c.price <= criteria.max_price)
            stmt = stmt.order_by(products.c.name.asc())

        async with self._session() as session:
            result = await session.execute(stmt)
            return [_row_to_product(row) for row in result.fetchall()]

    async def create_product(self, fields: dict, category_id: str) -> Product:
        """
        INSERT と読み戻しを同じセッションで行い、読み戻しが成功してから
        コミットする。例外時はロールバックされ、行は残らない。
        """
        product_id = str(uuid4())
        async with self._session() as session:
            await session.execute(
                insert(products).values(
                    id=product_id,
                    name=fields["name"],
                    description=fields.get("description", ""),
                    price=fields["price"],
                    is_active=fields.get("is_active", True),
                    created_at=datetime.now(timezone.utc),
                    category_id=category_id,
                )
            )
            result = await session.execute(
                _product_select().where(products.c.id == product_id)
            )
            row = result.fetchone()
            if row is None:
                raise StoreError(f"Product {product_id} not visible after insert")
            product = _row_to_product(row)
            await session.commit()
        return product

    async def update_product(self, product_id: str, fields: dict) -> Product:
        if fields:
            async with self._session() as session:
                result = await session.execute(
                    update(products)
                    .where(products.c.id == product_id)
                    .values(**fields)
                )
                if result.rowcount == 0:
                    raise RecordNotFound(product_id)
                await session.commit()

        product = await self.get_product(product_id)
        if product is None:
            raise RecordNotFound(product_id)
        return product

    async def delete_product(self, product_id: str) -> None:
        async with self._session() as session:
            result = await session.execute(
                delete(products).where(products.c.id == product_id)
            )
            if result.rowcount == 0:
                raise RecordNotFound(product_id)
            await session.commit()
        logger.info("Product %s deleted", product_id)
