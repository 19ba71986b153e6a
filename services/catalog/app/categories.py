"""
Catalog Service — カテゴリ解決とカテゴリコマンド

resolve_category_id は商品作成/更新時のカテゴリ解決:
  - category_id 指定   → 存在確認のみ (無ければ NOT_FOUND)
  - category_name 指定 → 名前で検索し、無ければ作成する (get-or-create)
  - どちらも無し        → VALIDATION_ERROR

同名カテゴリの同時作成で一意制約違反になった場合:
  - カテゴリ作成 API (create_category) は CONFLICT を返す
  - 商品作成中の解決は名前で読み直して、その ID を使う
"""

import logging

from .errors import (
    ServiceError,
    ServiceResult,
    Success,
    conflict,
    internal_error,
    not_found,
    validation_error,
)
from .models import CategoryCreateInput
from .store import CatalogStore, ConstraintViolation, StoreError

logger = logging.getLogger(__name__)


def auto_description(name: str) -> str:
    return f"Auto-created category for {name}"


async def resolve_category_id(
    store: CatalogStore,
    category_id: str | None = None,
    category_name: str | None = None,
) -> str | ServiceError:
    if category_id:
        category = await store.get_category(category_id)
        if category is None:
            return not_found("Category", category_id)
        return category.id

    if category_name:
        return await _get_or_create(store, category_name)

    return validation_error(
        "Either category_id or category_name must be provided",
        provided={"category_id": category_id, "category_name": category_name},
    )


async def _get_or_create(store: CatalogStore, name: str) -> str | ServiceError:
    category = await store.get_category_by_name(name)
    if category is not None:
        return category.id

    logger.info("Creating new category: %s", name)
    try:
        category = await store.create_category(name, auto_description(name))
    except ConstraintViolation:
        # 同名カテゴリが並行して作成された
        logger.info("Category %s created concurrently, re-reading by name", name)
        category = await store.get_category_by_name(name)
        if category is None:
            return conflict(
                f'Category with name "{name}" already exists', field="name"
            )
    return category.id


# ── カテゴリ API ─────────────────────────────────


async def create_category(store: CatalogStore, data: CategoryCreateInput) -> ServiceResult:
    logger.info("Creating category: %s", data.name)
    try:
        category = await store.create_category(data.name, data.description)
    except ConstraintViolation:
        return conflict(
            f'Category with name "{data.name}" already exists', field="name"
        )
    except StoreError as e:
        logger.error("Failed to create category: %s", e)
        return internal_error("Failed to create category", original_error=str(e))

    logger.info("Category created successfully: %s", category.id)
    return Success(message="Category created successfully", data=category)


async def list_categories(store: CatalogStore) -> ServiceResult:
    try:
        items = await store.list_categories()
    except StoreError as e:
        logger.error("Failed to fetch categories: %s", e)
        return internal_error("Failed to fetch categories", original_error=str(e))
    return Success(
        message="Categories fetched successfully",
        data={"categories": items, "count": len(items)},
    )


async def get_category(store: CatalogStore, category_id: str) -> ServiceResult:
    try:
        category = await store.get_category(category_id)
    except StoreError as e:
        logger.error("Failed to fetch category %s: %s", category_id, e)
        return internal_error("Failed to fetch category", original_error=str(e))
    if category is None:
        return not_found("Category", category_id)
    return Success(message="Category fetched successfully", data=category)
