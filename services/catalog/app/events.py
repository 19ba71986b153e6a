"""
Catalog Service — イベント定義

送信: catalog_events チャネル (商品作成 Saga の結果)
受信: inventory_events チャネル (在庫サービスでの在庫削除)

Redis Pub/Sub は fire-and-forget。発行に失敗しても
Saga の結果は変わらないため、警告ログだけ残す。
"""

import json
import logging

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CATALOG_EVENTS_CHANNEL = "catalog_events"
INVENTORY_EVENTS_CHANNEL = "inventory_events"

INVENTORY_DELETED = "InventoryDeleted"


class ProductSagaFinished(BaseModel):
    """商品作成 Saga が終了した (成功・補償済み・要手動対応のいずれか)"""
    product_id: str | None
    outcome: str | None
    state: str
    saga_log: list[dict]


class InventoryDeleted(BaseModel):
    """在庫サービスで在庫レコードが削除された"""
    sku: str = ""


async def publish_event(
    redis: aioredis.Redis | None,
    event_type: str,
    data: BaseModel,
    channel: str = CATALOG_EVENTS_CHANNEL,
) -> None:
    if redis is None:
        return
    try:
        await redis.publish(
            channel,
            json.dumps(
                {
                    "event_type": event_type,
                    "data": data.model_dump(mode="json"),
                },
                default=str,
            ),
        )
    except RedisError as e:
        logger.warning("Failed to publish %s to %s: %s", event_type, channel, e)
