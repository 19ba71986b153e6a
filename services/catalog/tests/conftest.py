"""Shared fixtures for the catalog service test suite."""

from __future__ import annotations

import os

# app.main reads these at import time.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("INVENTORY_SERVICE_URL", "http://inventory.test")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeCatalogStore, FakeInventoryClient


@pytest.fixture
def store() -> FakeCatalogStore:
    return FakeCatalogStore()


@pytest.fixture
def inventory() -> FakeInventoryClient:
    return FakeInventoryClient()


@pytest.fixture
def redis() -> MagicMock:
    """Mock Redis connection; only ``publish`` is used by the service."""
    conn = MagicMock()
    conn.publish = AsyncMock(return_value=1)
    return conn
