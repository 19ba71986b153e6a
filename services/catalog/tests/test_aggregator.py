"""Tests for the inventory aggregator and the response-shape normalizers."""

from __future__ import annotations

import pytest

from app.aggregator import (
    INVENTORY_UNAVAILABLE,
    INVENTORY_UNRECOGNIZED,
    InventoryAggregator,
)
from app.inventory_client import (
    InventoryError,
    normalize_inventory_list,
    normalize_inventory_record,
)
from fakes import FakeInventoryClient


def _seed(store):
    category = store.add_category("Tools")
    a = store.add_product("Hammer", 10, category)
    b = store.add_product("Saw", 25, category)
    return a, b


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

class TestNormalizeList:

    def test_wrapped_inventories(self):
        rows = [{"sku": "PROD-1", "quantity": 1}]
        assert normalize_inventory_list({"data": {"inventories": rows}}) == rows

    def test_wrapped_list(self):
        rows = [{"sku": "PROD-1", "quantity": 1}]
        assert normalize_inventory_list({"data": rows}) == rows

    def test_bare_list_drops_non_objects(self):
        assert normalize_inventory_list([{"sku": "a"}, "junk", 3]) == [{"sku": "a"}]

    @pytest.mark.parametrize(
        "response", [None, "text", {"items": []}, {"data": "x"}, {"data": {"other": []}}]
    )
    def test_unrecognized_shapes(self, response):
        assert normalize_inventory_list(response) is None


class TestNormalizeRecord:

    def test_wrapped_inventory(self):
        record = {"sku": "PROD-1"}
        assert normalize_inventory_record({"data": {"inventory": record}}) == record

    def test_wrapped_object(self):
        assert normalize_inventory_record({"data": {"sku": "PROD-1"}}) == {"sku": "PROD-1"}

    def test_bare_object(self):
        assert normalize_inventory_record({"sku": "PROD-1"}) == {"sku": "PROD-1"}

    @pytest.mark.parametrize("response", [None, [], "x", {}, {"data": None}, {"data": []}])
    def test_unrecognized_shapes(self, response):
        assert normalize_inventory_record(response) is None


# ---------------------------------------------------------------------------
# Batch attach
# ---------------------------------------------------------------------------

class TestAttachMany:

    @pytest.mark.asyncio
    async def test_joins_by_derived_sku(self, store):
        a, b = _seed(store)
        inventory = FakeInventoryClient(
            find_all_response={
                "data": {
                    "inventories": [
                        {"sku": f"PROD-{a.id}", "quantity": 7, "reserved": 2},
                        {"sku": "PROD-someone-else", "quantity": 1},
                    ]
                }
            }
        )
        items, warning = await InventoryAggregator(inventory).attach_many([a, b])

        assert warning is None
        assert items[0].inventory.quantity == 7
        assert items[0].inventory.reserved == 2
        assert items[1].inventory is None
        assert inventory.calls == [("find_all", None)]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_unknown(self, store):
        a, b = _seed(store)
        inventory = FakeInventoryClient(error=InventoryError("timeout"))
        items, warning = await InventoryAggregator(inventory).attach_many([a, b])

        assert [i.id for i in items] == [a.id, b.id]
        assert all(i.inventory is None for i in items)
        assert warning == INVENTORY_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unrecognized_shape_is_no_data(self, store):
        a, _ = _seed(store)
        inventory = FakeInventoryClient(find_all_response={"unexpected": True})
        items, warning = await InventoryAggregator(inventory).attach_many([a])
        assert items[0].inventory is None
        assert warning == INVENTORY_UNRECOGNIZED

    @pytest.mark.asyncio
    async def test_invalid_entries_are_skipped(self, store):
        a, b = _seed(store)
        inventory = FakeInventoryClient(
            find_all_response=[{"quantity": 3}, {"sku": f"PROD-{b.id}", "quantity": 4}]
        )
        items, _ = await InventoryAggregator(inventory).attach_many([a, b])
        assert items[0].inventory is None
        assert items[1].inventory.quantity == 4

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self, inventory):
        items, warning = await InventoryAggregator(inventory).attach_many([])
        assert items == [] and warning is None
        assert inventory.calls == []


# ---------------------------------------------------------------------------
# Single attach
# ---------------------------------------------------------------------------

class TestAttachOne:

    @pytest.mark.asyncio
    async def test_targeted_lookup(self, store):
        a, _ = _seed(store)
        inventory = FakeInventoryClient(
            find_one_response={"data": {"sku": f"PROD-{a.id}", "quantity": 9}}
        )
        item = await InventoryAggregator(inventory).attach_one(a)
        assert item.inventory.quantity == 9
        assert inventory.calls == [("find_one", f"PROD-{a.id}")]

    @pytest.mark.asyncio
    async def test_failure_returns_product_with_unknown_inventory(self, store):
        a, _ = _seed(store)
        inventory = FakeInventoryClient(error=InventoryError("500"))
        item = await InventoryAggregator(inventory).attach_one(a)
        assert item.id == a.id
        assert item.inventory is None

    @pytest.mark.asyncio
    async def test_empty_response_is_unknown(self, store):
        a, _ = _seed(store)
        item = await InventoryAggregator(FakeInventoryClient()).attach_one(a)
        assert item.inventory is None
