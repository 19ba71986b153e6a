"""
Catalog Service — FastAPI エントリーポイント

商品カタログサービス。書き込み側は商品作成 Saga、
読み取り側は在庫アグリゲーターで在庫サービスのデータを結合する。

┌─────────┐  HTTP   ┌─────────────────┐  HTTP   ┌───────────────────┐
│ Gateway │ ──────▶ │ Catalog Service │ ──────▶ │ Inventory Service │
└─────────┘         │  (Saga / 集約)  │         └─────────┬─────────┘
                    └───────┬─────────┘                   │
                            │        inventory_events     │
                            │ ◀──── Redis Pub/Sub ────────┘
                   ┌────────▼────────┐
                   │   Catalog DB    │
                   └─────────────────┘

各操作は Success / ServiceError を返し、ここで HTTP レスポンスに変換する。
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import categories, commands, queries
from .aggregator import InventoryAggregator
from .errors import ServiceError, ServiceResult, internal_error, validation_error
from .inventory_client import InventoryClient
from .models import (
    CategoryCreateInput,
    ProductCreateInput,
    ProductFilter,
    ProductUpdateInput,
)
from .saga import ProductCreationSaga
from .schema import init_schema
from .store import CatalogStore
from .subscriber import run_subscriber

DATABASE_URL = os.environ["DATABASE_URL"]
INVENTORY_SERVICE_URL = os.environ["INVENTORY_SERVICE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
INVENTORY_TIMEOUT = float(os.environ.get("INVENTORY_TIMEOUT", "5.0"))
AUTO_CREATE_SCHEMA = os.environ.get("AUTO_CREATE_SCHEMA", "true").lower() == "true"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
store = CatalogStore(async_session)
redis_pool: aioredis.Redis | None = None
inventory: InventoryClient | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """起動時に在庫クライアントと Redis サブスクライバを用意する。"""
    global redis_pool, inventory
    if AUTO_CREATE_SCHEMA:
        await init_schema(engine)
    redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
    inventory = InventoryClient(INVENTORY_SERVICE_URL, timeout=INVENTORY_TIMEOUT)

    shutdown_event = asyncio.Event()
    subscriber_task = asyncio.create_task(
        run_subscriber(REDIS_URL, store, shutdown_event)
    )
    yield
    shutdown_event.set()
    subscriber_task.cancel()
    try:
        await subscriber_task
    except asyncio.CancelledError:
        pass
    await inventory.aclose()
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Catalog Service", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def request_validation_failed(request: Request, exc: RequestValidationError):
    """リクエストの入力検証エラーも 400 の構造化エラーとして返す。"""
    error = validation_error(
        "Validation failed", validation_errors=jsonable_encoder(exc.errors())
    )
    return JSONResponse(status_code=error.code, content=error.to_envelope())


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = internal_error(f"Unexpected error: {exc}")
    return JSONResponse(status_code=error.code, content=error.to_envelope())


def _respond(result: ServiceResult):
    if isinstance(result, ServiceError):
        return JSONResponse(status_code=result.code, content=result.to_envelope())
    return result.to_envelope()


# ── Product Commands (Write 側) ──────────────────


@app.post("/products")
async def create_product(req: ProductCreateInput):
    """商品作成 Saga を実行する。"""
    logger.info("Creating product: %s", req.name)
    saga = ProductCreationSaga(store, inventory, redis_pool)
    result = await saga.execute(req)
    logger.info(
        "Product saga finished: outcome=%s state=%s",
        result.outcome.value if result.outcome else None,
        result.state.value,
    )
    return _respond(result.to_response())


@app.patch("/products/{product_id}")
async def update_product(product_id: str, req: ProductUpdateInput):
    return _respond(await commands.update_product(store, product_id, req))


@app.delete("/products/{product_id}")
async def delete_product(product_id: str, soft_delete: bool = True):
    """soft_delete=false で物理削除"""
    return _respond(await commands.delete_product(store, product_id, soft_delete))


# ── Product Queries (Read 側) ────────────────────


@app.get("/products")
async def find_all_products():
    return _respond(await queries.find_all(store, InventoryAggregator(inventory)))


@app.post("/products/filter")
async def filter_products(req: ProductFilter):
    return _respond(
        await queries.filter_products(store, InventoryAggregator(inventory), req)
    )


@app.get("/products/{product_id}")
async def find_one_product(product_id: str):
    return _respond(
        await queries.find_one(store, InventoryAggregator(inventory), product_id)
    )


# ── Categories ───────────────────────────────────


@app.post("/categories")
async def create_category(req: CategoryCreateInput):
    return _respond(await categories.create_category(store, req))


@app.get("/categories")
async def list_categories():
    return _respond(await categories.list_categories(store))


@app.get("/categories/{category_id}")
async def get_category(category_id: str):
    return _respond(await categories.get_category(store, category_id))


@app.get("/health")
async def health():
    return {"status": "ok", "service": "catalog-service"}
