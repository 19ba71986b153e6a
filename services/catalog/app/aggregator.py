"""
Catalog Service — 在庫アグリゲーター (読み取り側)

カタログ DB の商品に在庫サービスの在庫情報を付け足す。
在庫サービス側の失敗 (タイムアウト・エラー・空/不正レスポンス) で
読み取り操作を失敗させてはいけない。その場合 inventory は None
(在庫不明) とし、一覧ではレスポンス全体に 1 つだけ警告を付ける。

結合キーは SKU = "PROD-" + product_id。別の対応表は持たない。
"""

import logging

from pydantic import ValidationError

from .inventory_client import (
    InventoryClient,
    InventoryError,
    normalize_inventory_list,
    normalize_inventory_record,
)
from .models import InventoryRecord, Product, ProductWithInventory

logger = logging.getLogger(__name__)

INVENTORY_UNAVAILABLE = "Inventory service unavailable, inventory data is unknown"
INVENTORY_UNRECOGNIZED = "Inventory service response was not recognized, inventory data is unknown"


def _to_record(item: dict) -> InventoryRecord | None:
    try:
        return InventoryRecord.model_validate(item)
    except ValidationError:
        return None


class InventoryAggregator:
    def __init__(self, inventory: InventoryClient):
        self.inventory = inventory

    async def attach_many(
        self, products: list[Product]
    ) -> tuple[list[ProductWithInventory], str | None]:
        """
        在庫一覧を 1 回だけ取得し、SKU で索引を作ってクライアント側で結合する。
        戻り値の 2 つ目はレスポンス全体に付ける警告 (無ければ None)。
        """
        if not products:
            return [], None

        warning = None
        by_sku: dict[str, InventoryRecord] = {}
        try:
            response = await self.inventory.request_find_all()
        except InventoryError as e:
            logger.warning("Failed to fetch inventory data: %s", e)
            warning = INVENTORY_UNAVAILABLE
        else:
            items = normalize_inventory_list(response)
            if items is None:
                logger.warning("Unexpected inventory response format")
                warning = INVENTORY_UNRECOGNIZED
            else:
                for item in items:
                    record = _to_record(item)
                    if record is not None:
                        by_sku[record.sku] = record
                logger.info("Received %d inventory records", len(by_sku))

        return [
            ProductWithInventory(**p.model_dump(), inventory=by_sku.get(p.sku))
            for p in products
        ], warning

    async def attach_one(self, product: Product) -> ProductWithInventory:
        sku = product.sku
        try:
            response = await self.inventory.request_find_one(sku)
        except InventoryError as e:
            logger.warning("Failed to fetch inventory for product %s: %s", product.id, e)
            return ProductWithInventory(**product.model_dump(), inventory=None)

        record = normalize_inventory_record(response)
        inventory = _to_record(record) if record is not None else None
        if inventory is None:
            logger.warning("Unexpected inventory response for SKU %s", sku)
        else:
            logger.info("Received inventory data for SKU %s", sku)
        return ProductWithInventory(**product.model_dump(), inventory=inventory)
