"""
Catalog Service — ドメインモデルと入力 DTO

Product / Category はカタログ DB が所有する。
InventoryRecord は在庫サービスが所有し、このサービスからは読み取り専用。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

SKU_PREFIX = "PROD-"


def inventory_sku(product_id: str) -> str:
    """商品 ID から在庫 SKU を導出する (在庫サービスとのワイヤ契約)。"""
    return f"{SKU_PREFIX}{product_id}"


class Category(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None


class Product(BaseModel):
    id: str
    name: str
    description: str
    price: float = Field(ge=0)
    is_active: bool = True
    created_at: datetime
    category_id: str
    category: Category | None = None

    @property
    def sku(self) -> str:
        return inventory_sku(self.id)


class InventoryRecord(BaseModel):
    """在庫サービスの在庫レコード。未知のフィールドもそのまま保持する。"""

    model_config = ConfigDict(extra="allow")

    sku: str
    quantity: int = 0
    reserved: int = 0


class ProductWithInventory(Product):
    """inventory が None の場合は「在庫不明」を意味する。"""

    inventory: InventoryRecord | None = None


# ── Input DTOs ───────────────────────────────────


class ProductCreateInput(BaseModel):
    name: str
    description: str = ""
    price: float = Field(ge=0)
    quantity: int | None = None
    is_active: bool = True
    category_id: str | None = None
    category_name: str | None = None


class ProductUpdateInput(BaseModel):
    name: str | None = None
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    is_active: bool | None = None
    category_id: str | None = None
    category_name: str | None = None


class ProductFilter(BaseModel):
    """絞り込み条件。指定された項目だけが AND 条件になる。"""

    category_id: str | None = None
    category_name: str | None = None
    # category_name の別名
    category: str | None = None
    name: str | None = None
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)

    @property
    def category_name_pattern(self) -> str | None:
        return self.category_name or self.category


class CategoryCreateInput(BaseModel):
    name: str
    description: str | None = None
