"""
Catalog Service — クエリハンドラ (読み取り側)

カタログ DB から商品を取得し、InventoryAggregator で在庫情報を付ける。
在庫サービスが落ちていても読み取りは成功させる。
"""

import logging

from .aggregator import InventoryAggregator
from .errors import ServiceResult, Success, internal_error, not_found, validation_error
from .models import ProductFilter
from .store import CatalogStore, StoreError

logger = logging.getLogger(__name__)


async def find_one(
    store: CatalogStore,
    aggregator: InventoryAggregator,
    product_id: str,
) -> ServiceResult:
    if not product_id:
        return validation_error("Product ID is required", field="id")

    logger.info("Fetching product: %s", product_id)
    try:
        product = await store.get_product(product_id)
    except StoreError as e:
        logger.error("Failed to fetch product %s: %s", product_id, e)
        return internal_error(
            f"Failed to fetch product: {e}", product_id=product_id
        )
    if product is None:
        return not_found("Product", product_id)

    return Success(
        message="Product fetched successfully",
        data={"product": await aggregator.attach_one(product)},
    )


async def find_all(store: CatalogStore, aggregator: InventoryAggregator) -> ServiceResult:
    """有効 (is_active) な商品のみ返す。"""
    logger.info("Fetching all products")
    try:
        products = await store.list_products()
    except StoreError as e:
        logger.error("Failed to fetch products: %s", e)
        return internal_error(f"Failed to fetch products: {e}")

    if not products:
        return Success(message="No products found", data={"products": [], "count": 0})

    logger.info("Found %d products, fetching inventory data", len(products))
    items, warning = await aggregator.attach_many(products)
    return Success(
        message="Products fetched successfully",
        data={"products": items, "count": len(items)},
        warning=warning,
    )


async def filter_products(
    store: CatalogStore,
    aggregator: InventoryAggregator,
    criteria: ProductFilter,
) -> ServiceResult:
    applied = criteria.model_dump(exclude_none=True)
    logger.info("Filtering products with criteria: %s", applied)
    try:
        products = await store.list_products(criteria)
    except StoreError as e:
        logger.error("Failed to filter products: %s", e)
        return internal_error(f"Failed to filter products: {e}")

    logger.info("Found %d products matching criteria", len(products))
    if not products:
        return Success(
            message="No products found matching criteria",
            data={"products": [], "count": 0, "filters": applied},
        )

    items, warning = await aggregator.attach_many(products)
    return Success(
        message="Products filtered successfully",
        data={"products": items, "count": len(items), "filters": applied},
        warning=warning,
    )
