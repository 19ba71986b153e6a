"""
Catalog Service — コマンドハンドラ (書き込み側)

商品作成は saga.py の ProductCreationSaga が担当する。
ここでは更新・削除と、在庫削除イベントによる無効化を扱う。
"""

import logging

from .categories import resolve_category_id
from .errors import (
    ServiceError,
    ServiceResult,
    Success,
    internal_error,
    not_found,
    validation_error,
)
from .models import SKU_PREFIX, Product, ProductUpdateInput
from .store import CatalogStore, RecordNotFound, StoreError

logger = logging.getLogger(__name__)


async def update_product(
    store: CatalogStore,
    product_id: str,
    data: ProductUpdateInput,
) -> ServiceResult:
    """
    商品更新コマンド

    明示的に指定されたフィールドだけを書き込む。
    category_id / category_name が指定された場合はカテゴリを解決し直す。
    """
    if not product_id:
        return validation_error("Product ID is required", field="id")

    logger.info("Updating product %s", product_id)
    try:
        existing = await store.get_product(product_id)
        if existing is None:
            return not_found("Product", product_id)

        fields = data.model_dump(
            exclude_unset=True,
            exclude_none=True,
            exclude={"category_id", "category_name"},
        )
        if data.category_id or data.category_name:
            category_id = await resolve_category_id(
                store, data.category_id, data.category_name
            )
            if isinstance(category_id, ServiceError):
                return category_id
            fields["category_id"] = category_id

        product = await store.update_product(product_id, fields)
    except RecordNotFound:
        return not_found("Product", product_id)
    except StoreError as e:
        logger.error("Failed to update product %s: %s", product_id, e)
        return internal_error(f"Failed to update product: {e}", product_id=product_id)

    logger.info("Product %s updated successfully", product_id)
    return Success(message="Product updated successfully", data={"product": product})


async def delete_product(
    store: CatalogStore,
    product_id: str,
    soft_delete: bool = True,
) -> ServiceResult:
    """soft_delete=True なら is_active=False にするだけ。行は残る。"""
    if not product_id:
        return validation_error("Product ID is required", field="id")

    logger.info("Removing product %s (soft_delete: %s)", product_id, soft_delete)
    try:
        product = await store.get_product(product_id)
        if product is None:
            return not_found("Product", product_id)

        if soft_delete:
            product = await store.update_product(product_id, {"is_active": False})
            logger.info("Product %s soft deleted (marked as inactive)", product_id)
        else:
            await store.delete_product(product_id)
            logger.info("Product %s hard deleted", product_id)
    except RecordNotFound:
        return not_found("Product", product_id)
    except StoreError as e:
        logger.error("Failed to remove product %s: %s", product_id, e)
        return internal_error(f"Failed to remove product: {e}", product_id=product_id)

    return Success(
        message="Product deactivated successfully"
        if soft_delete
        else "Product deleted successfully",
        data={"product": product},
    )


async def _find_by_sku(store: CatalogStore, sku: str) -> Product | None:
    """
    SKU から商品を探す。専用の SKU カラムは持たない。

    1. "PROD-<id>" 形式なら <id> を商品 ID として引く
    2. 見つからなければ、商品名に SKU を含む最初の商品
       (従来の挙動。名前が偶然一致すると誤爆しうる)
    """
    if sku.startswith(SKU_PREFIX) and len(sku) > len(SKU_PREFIX):
        product = await store.get_product(sku[len(SKU_PREFIX):])
        if product is not None:
            return product
    return await store.get_product_by_name_contains(sku)


async def deactivate_by_sku(store: CatalogStore, sku: str) -> ServiceResult:
    """
    在庫削除に伴う商品の無効化 (イベント駆動の補償)

    同じイベントが再配送されても同じフラグを書くだけなので冪等。
    """
    if not sku:
        return validation_error("SKU is required", field="sku")

    logger.info("Deactivating product with SKU: %s", sku)
    try:
        product = await _find_by_sku(store, sku)
        if product is None:
            return not_found("Product", sku)
        deactivated = await store.update_product(product.id, {"is_active": False})
    except RecordNotFound:
        return not_found("Product", sku)
    except StoreError as e:
        logger.error("Failed to deactivate product by SKU %s: %s", sku, e)
        return internal_error("Failed to deactivate product", sku=sku)

    logger.info("Product deactivated successfully: %s", deactivated.id)
    return Success(
        message="Product deactivated successfully due to inventory deletion",
        data={"product": deactivated},
    )
