"""
Catalog Service — 在庫サービスクライアント

在庫サービスは別サービス・別 DB。共有トランザクションは無い。
すべての呼び出しは タイムアウト / 通信エラー / 不正なペイロード
のいずれかで失敗しうる。失敗は InventoryError にまとめて送出する。

在庫サービスのレスポンス形式は統一されていないため、
normalize_* 関数で受け入れる形を明示的に列挙して正規化する:

  一覧:   {"data": {"inventories": [...]}} | {"data": [...]} | [...]
  単一:   {"data": {"inventory": {...}}}   | {"data": {...}} | {...}

それ以外の形は「在庫データなし」として扱う。
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CREATE_PATH = "/commands/inventory"
FIND_ALL_PATH = "/queries/inventory"
FIND_ONE_PATH = "/queries/inventory/{sku}"


class InventoryError(Exception):
    """在庫サービス呼び出しの失敗 (タイムアウト・通信・リモートエラー)。"""


class InventoryClient:
    """
    在庫サービスへの HTTP ゲートウェイ。状態は持たない。

    httpx.AsyncClient は lifespan で 1 つ作って共有する。
    各呼び出しは asyncio.wait_for で全体の所要時間を制限する。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request_create(self, sku: str, quantity: int, reserved: int = 0) -> Any:
        return await self._call(
            "POST",
            CREATE_PATH,
            json={"sku": sku, "quantity": quantity, "reserved": reserved},
        )

    async def request_find_all(self) -> Any:
        return await self._call("GET", FIND_ALL_PATH)

    async def request_find_one(self, sku: str) -> Any:
        return await self._call("GET", FIND_ONE_PATH.format(sku=sku))

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await asyncio.wait_for(
                self._client.request(method, path, **kwargs), self.timeout
            )
            resp.raise_for_status()
            return resp.json()
        except asyncio.TimeoutError as e:
            raise InventoryError(
                f"Inventory service timed out after {self.timeout}s ({method} {path})"
            ) from e
        except httpx.HTTPStatusError as e:
            raise InventoryError(
                f"Inventory service returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise InventoryError(f"Inventory service request failed: {e!r}") from e
        except ValueError as e:
            raise InventoryError(f"Inventory service returned invalid JSON: {e}") from e


# ── レスポンス形式の正規化 ───────────────────────


def normalize_inventory_list(response: Any) -> list[dict] | None:
    """
    一覧レスポンスを在庫レコードのリストに正規化する。
    認識できない形の場合は None を返す。
    """
    if isinstance(response, list):
        items = response
    elif isinstance(response, dict) and isinstance(response.get("data"), dict) \
            and isinstance(response["data"].get("inventories"), list):
        items = response["data"]["inventories"]
    elif isinstance(response, dict) and isinstance(response.get("data"), list):
        items = response["data"]
    else:
        return None
    return [item for item in items if isinstance(item, dict)]


def normalize_inventory_record(response: Any) -> dict | None:
    """単一レスポンスを在庫レコードに正規化する。認識できなければ None。"""
    if not isinstance(response, dict):
        return None
    data = response.get("data")
    if isinstance(data, dict):
        if isinstance(data.get("inventory"), dict):
            return data["inventory"]
        return data
    if "data" in response:
        return None
    return response or None
