"""Pytest configuration and fixtures for docdb-audit tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from docdb_audit.config import AuditConfig
from docdb_audit.stores.memory import MemoryStore


def shop_collections():
    """Small e-commerce dataset with the usual drift and a few broken references."""
    return {
        "stores": [
            {"_id": "s1", "name": "North", "isActive": True},
            {"_id": "s2", "name": "South", "isActive": "true"},
        ],
        "products": [
            {"_id": "p1", "name": "Lamp", "storeId": "s1", "price": {"current": 20}, "images": ["a.png"]},
            {"_id": "p2", "name": "Desk", "storeId": "s9", "price": 150, "rating": 4},
            {"_id": "p3", "id": "p3", "name": "Chair", "storeId": None, "image": "c.png"},
        ],
        "orders": [
            {"_id": "o1", "userId": "u1", "items": [{"productId": "p1"}, {"productId": "p7"}]},
            {"_id": "o2", "userId": "u1", "items": "p2"},
        ],
        "users": [
            {"_id": "u1", "email": "a@example.com", "password": "hunter2"},
        ],
        "logs": [],
    }


class FailingStore(MemoryStore):
    """MemoryStore that raises on chosen operations for chosen collections."""

    def __init__(self, collections, fail_on=(), fail_times=None, catalog_error=None):
        super().__init__(collections)
        self.fail_on = set(fail_on)
        self.fail_times = fail_times
        self.catalog_error = catalog_error
        self.calls = {}

    def _maybe_fail(self, op, collection):
        key = (op, collection)
        self.calls[key] = self.calls.get(key, 0) + 1
        if key in self.fail_on or (op, "*") in self.fail_on:
            if self.fail_times is None or self.calls[key] <= self.fail_times:
                raise RuntimeError(f"{op} failed for {collection}")

    def list_collections(self):
        if self.catalog_error:
            raise self.catalog_error
        return super().list_collections()

    def count(self, collection):
        self._maybe_fail("count", collection)
        return super().count(collection)

    def find(self, collection, limit):
        self._maybe_fail("find", collection)
        return super().find(collection, limit)

    def distinct(self, collection, field):
        self._maybe_fail("distinct", collection)
        return super().distinct(collection, field)


@pytest.fixture
def shop_store() -> MemoryStore:
    return MemoryStore(shop_collections(), name="shop")


@pytest.fixture
def serial_config() -> AuditConfig:
    """Single worker, so log and call order is deterministic."""
    return AuditConfig(max_workers=1)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)
