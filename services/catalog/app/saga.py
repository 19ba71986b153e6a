"""
Catalog Service — 商品作成 Saga

カタログ DB と在庫サービスは別々に所有されており、共有の
コミットプロトコル (2PC) は無い。そのため商品作成は
補償トランザクション付きの Saga として実行する。

  ┌──────────────────────────────────────────────────────────┐
  │  1. カテゴリを解決 (失敗 → 何も書いていないので即終了)      │
  │  2. 商品を作成      ← ここが point of no return            │
  │  3. quantity > 0 なら在庫サービスに在庫作成を依頼           │
  │     ├─ 成功            → SUCCESS_WITH_INVENTORY            │
  │     ├─ 応答形式が不正  → SUCCESS_WITH_UNKNOWN_INVENTORY    │
  │     └─ 失敗/タイムアウト → 商品を削除 (補償トランザクション) │
  │          ├─ 削除成功 → COMPENSATED_FAILURE   (503, 再試行可) │
  │          └─ 削除失敗 → UNCOMPENSATED_FAILURE (500, 手動対応) │
  │  4. quantity が無ければ → SUCCESS_WITHOUT_INVENTORY         │
  └──────────────────────────────────────────────────────────┘

状態遷移:
    PENDING → PRODUCT_COMMITTED → DONE
                                → INVENTORY_REQUESTED → DONE
                                                      → COMPENSATED
                                                      → FAILED_NEEDS_CLEANUP

Saga 自体は状態を永続化しない。途中から再開もしない。
在庫作成のリトライも行わない (リトライは呼び出し側の責任)。
"""

import logging
from datetime import datetime, timezone
from enum import Enum

import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError

from . import events
from .categories import resolve_category_id
from .errors import (
    ServiceError,
    ServiceResult,
    Success,
    internal_error,
    service_unavailable,
)
from .inventory_client import InventoryClient, InventoryError, normalize_inventory_record
from .models import InventoryRecord, Product, ProductCreateInput
from .store import CatalogStore, RecordNotFound, StoreError

logger = logging.getLogger(__name__)


class SagaState(str, Enum):
    PENDING = "PENDING"
    PRODUCT_COMMITTED = "PRODUCT_COMMITTED"
    INVENTORY_REQUESTED = "INVENTORY_REQUESTED"
    COMPENSATED = "COMPENSATED"
    FAILED_NEEDS_CLEANUP = "FAILED_NEEDS_CLEANUP"
    DONE = "DONE"


class SagaOutcome(str, Enum):
    SUCCESS_WITH_INVENTORY = "SUCCESS_WITH_INVENTORY"
    SUCCESS_WITHOUT_INVENTORY = "SUCCESS_WITHOUT_INVENTORY"
    SUCCESS_WITH_UNKNOWN_INVENTORY = "SUCCESS_WITH_UNKNOWN_INVENTORY"
    COMPENSATED_FAILURE = "COMPENSATED_FAILURE"
    UNCOMPENSATED_FAILURE = "UNCOMPENSATED_FAILURE"


class SagaResult(BaseModel):
    """
    Saga 1 回分の結果。永続化せず、呼び出し元に返したら捨てる。

    outcome が None の場合は商品を書き込む前に中断したことを表す
    (カテゴリ解決の失敗など)。
    """

    state: SagaState
    outcome: SagaOutcome | None = None
    product: Product | None = None
    inventory: InventoryRecord | None = None
    error: ServiceError | None = None
    saga_log: list[dict] = []

    def to_response(self) -> ServiceResult:
        if self.error is not None:
            return self.error

        if self.outcome == SagaOutcome.SUCCESS_WITH_INVENTORY:
            return Success(
                message="Product and inventory created successfully",
                data={
                    "product": self.product,
                    "inventory": self.inventory,
                    "saga_log": self.saga_log,
                },
            )
        if self.outcome == SagaOutcome.SUCCESS_WITH_UNKNOWN_INVENTORY:
            return Success(
                message="Product created, inventory status unknown",
                data={
                    "product": self.product,
                    "inventory": None,
                    "saga_log": self.saga_log,
                },
                warning="Inventory service response was invalid",
            )
        return Success(
            message="Product created successfully",
            data={"product": self.product, "saga_log": self.saga_log},
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _begin(saga_log: list[dict], action: str) -> None:
    saga_log.append(
        {
            "step": len(saga_log) + 1,
            "action": action,
            "status": "EXECUTING",
            "timestamp": _now(),
        }
    )


def _complete(saga_log: list[dict]) -> None:
    saga_log[-1]["status"] = "COMPLETED"


def _fail(saga_log: list[dict], error: str) -> None:
    saga_log[-1]["status"] = "FAILED"
    saga_log[-1]["error"] = error


def _parse_inventory(response, expected_sku: str) -> InventoryRecord | None:
    """SKU が "PROD-" + product_id と一致しないレコードは使えないものとみなす。"""
    record = normalize_inventory_record(response)
    if record is None:
        return None
    try:
        inventory = InventoryRecord.model_validate(record)
    except ValidationError:
        return None
    if inventory.sku != expected_sku:
        logger.warning(
            "Inventory service returned SKU %s, expected %s", inventory.sku, expected_sku
        )
        return None
    return inventory


class ProductCreationSaga:
    """商品作成 Saga のオーケストレーター (リクエストごとに生成する)"""

    def __init__(
        self,
        store: CatalogStore,
        inventory: InventoryClient,
        redis: aioredis.Redis | None = None,
    ):
        self.store = store
        self.inventory = inventory
        self.redis = redis

    async def execute(self, data: ProductCreateInput) -> SagaResult:
        saga_log: list[dict] = []

        # ── Step 1: カテゴリを解決 ──────────────────
        _begin(saga_log, "ResolveCategory")
        try:
            category_id = await resolve_category_id(
                self.store, data.category_id, data.category_name
            )
        except StoreError as e:
            logger.error("Failed to resolve category: %s", e)
            category_id = internal_error(
                "Failed to resolve category", original_error=str(e)
            )
        if isinstance(category_id, ServiceError):
            _fail(saga_log, category_id.message)
            return SagaResult(
                state=SagaState.PENDING, error=category_id, saga_log=saga_log
            )
        _complete(saga_log)

        # ── Step 2: 商品を作成 ──────────────────────
        _begin(saga_log, "CreateProduct")
        try:
            product = await self.store.create_product(
                data.model_dump(include={"name", "description", "price", "is_active"}),
                category_id,
            )
        except StoreError as e:
            _fail(saga_log, str(e))
            logger.error("Failed to create product %s: %s", data.name, e)
            return SagaResult(
                state=SagaState.PENDING,
                error=internal_error(
                    f"Failed to create product: {e}", original_error=str(e)
                ),
                saga_log=saga_log,
            )
        _complete(saga_log)
        logger.info("Product created successfully: %s", product.id)

        # ── Step 3: 在庫を作成 (quantity 指定時のみ) ──
        if data.quantity is not None and data.quantity > 0:
            return await self._create_inventory(product, data.quantity, saga_log)

        result = SagaResult(
            state=SagaState.DONE,
            outcome=SagaOutcome.SUCCESS_WITHOUT_INVENTORY,
            product=product,
            saga_log=saga_log,
        )
        await self._publish_saga_event("ProductSagaCompleted", result)
        return result

    async def _create_inventory(
        self,
        product: Product,
        quantity: int,
        saga_log: list[dict],
    ) -> SagaResult:
        _begin(saga_log, "CreateInventory")
        logger.info("Requesting inventory creation for product %s", product.id)

        try:
            response = await self.inventory.request_create(product.sku, quantity, 0)
        except InventoryError as e:
            _fail(saga_log, str(e))
            logger.error("Failed to create inventory for product %s: %s", product.id, e)
            return await self._compensate(product, e, saga_log)
        _complete(saga_log)

        inventory = _parse_inventory(response, product.sku)
        if inventory is None:
            logger.warning(
                "Unexpected response from inventory service for product %s", product.id
            )
            result = SagaResult(
                state=SagaState.DONE,
                outcome=SagaOutcome.SUCCESS_WITH_UNKNOWN_INVENTORY,
                product=product,
                saga_log=saga_log,
            )
        else:
            logger.info("Inventory created: SKU %s", inventory.sku)
            result = SagaResult(
                state=SagaState.DONE,
                outcome=SagaOutcome.SUCCESS_WITH_INVENTORY,
                product=product,
                inventory=inventory,
                saga_log=saga_log,
            )

        await self._publish_saga_event("ProductSagaCompleted", result)
        return result

    async def _compensate(
        self,
        product: Product,
        cause: InventoryError,
        saga_log: list[dict],
    ) -> SagaResult:
        """補償トランザクション: 作成したばかりの商品を削除する。"""
        _begin(saga_log, "DeleteProduct (COMPENSATING)")
        logger.info("Starting rollback for product %s", product.id)

        try:
            await self.store.delete_product(product.id)
        except RecordNotFound:
            logger.warning("Product %s was already gone during rollback", product.id)
        except Exception as e:
            # 削除できたか不明な失敗もすべて手動対応として扱う
            _fail(saga_log, repr(e))
            logger.exception(
                "Failed to rollback product %s. Manual cleanup required!", product.id
            )
            result = SagaResult(
                state=SagaState.FAILED_NEEDS_CLEANUP,
                outcome=SagaOutcome.UNCOMPENSATED_FAILURE,
                product=product,
                error=internal_error(
                    "Failed to create inventory and rollback product creation",
                    product_id=product.id,
                    requires_manual_cleanup=True,
                    inventory_error=str(cause),
                    rollback_error=repr(e),
                    saga_log=saga_log,
                ),
                saga_log=saga_log,
            )
            await self._publish_saga_event("ProductSagaFailed", result)
            return result

        _complete(saga_log)
        logger.info(
            "Product %s rolled back successfully due to inventory creation failure",
            product.id,
        )
        result = SagaResult(
            state=SagaState.COMPENSATED,
            outcome=SagaOutcome.COMPENSATED_FAILURE,
            product=product,
            error=service_unavailable(
                f"Inventory creation failed: {cause}. Product was rolled back.",
                service="Inventory Service",
                product_id=product.id,
                retryable=True,
                saga_log=saga_log,
            ),
            saga_log=saga_log,
        )
        await self._publish_saga_event("ProductSagaCompensated", result)
        return result

    async def _publish_saga_event(self, event_type: str, result: SagaResult) -> None:
        await events.publish_event(
            self.redis,
            event_type,
            events.ProductSagaFinished(
                product_id=result.product.id if result.product else None,
                outcome=result.outcome.value if result.outcome else None,
                state=result.state.value,
                saga_log=result.saga_log,
            ),
        )
