"""
Catalog Service — Redis Pub/Sub サブスクライバー

inventory_events チャネルを購読し、InventoryDeleted イベントを
受け取ったら対応する商品を無効化する (イベント駆動の補償)。

fire-and-forget なので返信はしない。失敗してもエラーを返す相手が
いないため、ログに残すだけ。
"""

import asyncio
import json
import logging

import redis.asyncio as aioredis
from pydantic import ValidationError

from . import commands
from .errors import ServiceError
from .events import INVENTORY_DELETED, INVENTORY_EVENTS_CHANNEL, InventoryDeleted
from .store import CatalogStore

logger = logging.getLogger(__name__)


async def handle_inventory_deleted(store: CatalogStore, data: dict) -> None:
    """在庫削除イベントのハンドラ。結果はログにのみ残す。"""
    logger.info("Received inventory deletion event: %s", data)
    try:
        event = InventoryDeleted.model_validate(data)
    except ValidationError as e:
        logger.error("Invalid inventory deletion event %s: %s", data, e)
        return

    result = await commands.deactivate_by_sku(store, event.sku)
    if isinstance(result, ServiceError):
        logger.error(
            "Failed to deactivate product with SKU %s: %s", event.sku, result.message
        )
        return
    logger.info("Product deactivated successfully for SKU: %s", event.sku)


async def handle_message(store: CatalogStore, raw: str) -> None:
    event = json.loads(raw)
    event_type = event.get("event_type")
    if event_type == INVENTORY_DELETED:
        await handle_inventory_deleted(store, event.get("data") or {})
    else:
        logger.debug("Ignoring event: %s", event_type)


async def run_subscriber(
    redis_url: str,
    store: CatalogStore,
    shutdown_event: asyncio.Event,
) -> None:
    """
    inventory_events チャネルを購読する。
    shutdown_event がセットされるまで無限ループで待機する。
    """
    redis_conn = aioredis.from_url(redis_url, decode_responses=True)
    pubsub = redis_conn.pubsub()
    await pubsub.subscribe(INVENTORY_EVENTS_CHANNEL)
    logger.info("Subscribed to %s channel", INVENTORY_EVENTS_CHANNEL)

    try:
        while not shutdown_event.is_set():
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    await handle_message(store, message["data"])
                except Exception:
                    logger.exception("Failed to process event")
            else:
                await asyncio.sleep(0.1)
    finally:
        await pubsub.unsubscribe(INVENTORY_EVENTS_CHANNEL)
        await pubsub.aclose()
        await redis_conn.aclose()
