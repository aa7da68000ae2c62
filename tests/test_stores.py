"""Tests for the document store adapters."""

import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy import JSON, Column, Integer, MetaData, String, Table, create_engine
from sqlalchemy.pool import StaticPool

from docdb_audit.auditor import DatabaseAuditor
from docdb_audit.stores import MemoryStore, MongoStore, SqlStore, get_store, redact_url


class TestMemoryStore:
    """Tests for the in-memory store."""

    def test_basic_reads(self, shop_store):
        assert shop_store.list_collections() == ["logs", "orders", "products", "stores", "users"]
        assert shop_store.count("products") == 3
        assert len(shop_store.find("products", limit=2)) == 2

    def test_find_returns_copies(self, shop_store):
        shop_store.find("stores", limit=1)[0]["name"] = "changed"
        assert shop_store.find("stores", limit=1)[0]["name"] == "North"

    def test_distinct_flattens_arrays_and_skips_none(self):
        store = MemoryStore({"c": [{"t": ["a", "b"]}, {"t": "a"}, {"t": None}, {}]})
        assert store.distinct("c", "t") == ["a", "b"]

    def test_distinct_dotted_path(self):
        store = MemoryStore({"c": [{"a": {"b": 1}}, {"a": {"b": 2}}]})
        assert store.distinct("c", "a.b") == [1, 2]

    def test_unknown_collection(self, shop_store):
        with pytest.raises(LookupError):
            shop_store.count("nope")

    def test_from_json(self, temp_dir):
        path = temp_dir / "dump.json"
        path.write_text(json.dumps({"a": [{"_id": 1}]}), encoding="utf-8")
        store = MemoryStore.from_json(str(path))
        assert store.list_collections() == ["a"]
        assert store.describe() == "dump.json"

    def test_from_json_rejects_bad_shape(self, temp_dir):
        path = temp_dir / "bad.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(ValueError):
            MemoryStore.from_json(str(path))

    def test_set_indexes_reach_the_audit(self, serial_config):
        store = MemoryStore({"stores": [{"_id": "s1"}]})
        store.set_indexes("stores", [{"name": "_id_", "columns": ["_id"], "unique": True}])
        assert store.list_indexes("stores") == [{"name": "_id_", "columns": ["_id"], "unique": True}]
        assert store.list_indexes("other") == []

        result = DatabaseAuditor(store, serial_config).run()
        assert result.collections["stores"].indexes == ({"name": "_id_", "columns": ["_id"], "unique": True},)


@pytest.fixture
def sqlite_store():
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    metadata = MetaData()
    stores = Table(
        "stores", metadata,
        Column("_id", String, primary_key=True),
        Column("name", String),
    )
    products = Table(
        "products", metadata,
        Column("_id", Integer, primary_key=True),
        Column("storeId", String, index=True),
        Column("price", JSON),
    )
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(stores.insert(), [{"_id": "s1", "name": "North"}, {"_id": "s2", "name": None}])
        conn.execute(products.insert(), [
            {"_id": 1, "storeId": "s1", "price": {"current": 10}},
            {"_id": 2, "storeId": "s3", "price": 5},
        ])
    store = SqlStore(engine=engine)
    yield store
    store.close()


class TestSqlStore:
    """Tests for the SQLAlchemy store against in-memory SQLite."""

    def test_tables_are_collections(self, sqlite_store):
        assert sqlite_store.list_collections() == ["products", "stores"]
        assert sqlite_store.count("products") == 2

    def test_json_columns_are_nested(self, sqlite_store):
        rows = sqlite_store.find("products", limit=10)
        assert rows[0]["price"] == {"current": 10}

    def test_distinct_skips_null(self, sqlite_store):
        assert sorted(sqlite_store.distinct("stores", "name")) == ["North"]

    def test_distinct_unknown_column(self, sqlite_store):
        with pytest.raises(KeyError):
            sqlite_store.distinct("stores", "nope")

    def test_indexes_include_primary_key(self, sqlite_store):
        indexes = sqlite_store.list_indexes("products")
        assert indexes[0]["columns"] == ["_id"]
        assert indexes[0]["unique"] is True
        assert any(ix["columns"] == ["storeId"] for ix in indexes[1:])

    def test_audit_over_sql(self, sqlite_store, serial_config):
        result = DatabaseAuditor(sqlite_store, serial_config).run()
        check = next(r for r in result.relationships if r.descriptor.source_path == "products.storeId")
        assert (check.valid, check.invalid) == (1, 1)


class TestMongoStore:
    """Tests for the pymongo adapter with a mocked client."""

    def _client(self):
        client = MagicMock()
        db = MagicMock()
        db.name = "shop"
        client.__getitem__.return_value = db
        client.get_default_database.return_value = db
        return client, db

    def test_uses_named_database(self):
        client, db = self._client()
        store = MongoStore("mongodb://localhost", database_name="shop", client=client)
        client.__getitem__.assert_called_with("shop")
        assert store.describe() == "shop"

    def test_default_database_from_url(self):
        client, db = self._client()
        MongoStore("mongodb://localhost/shop", client=client)
        client.get_default_database.assert_called_once()

    def test_reads_delegate_to_pymongo(self):
        client, db = self._client()
        db.list_collection_names.return_value = ["b", "a"]
        collection = db.__getitem__.return_value
        collection.count_documents.return_value = 7
        collection.find.return_value.limit.return_value = [{"_id": 1}]
        collection.aggregate.return_value = [{"_id": "x"}, {"_id": None}]

        store = MongoStore("mongodb://localhost", database_name="shop", client=client)
        assert store.list_collections() == ["a", "b"]
        assert store.count("a") == 7
        assert store.find("a", limit=5) == [{"_id": 1}]
        collection.find.return_value.limit.assert_called_with(5)
        assert store.distinct("a", "f") == ["x"]

    def test_distinct_streams_through_aggregate(self):
        client, db = self._client()
        collection = db.__getitem__.return_value
        collection.aggregate.return_value = iter([{"_id": 1}, {"_id": "s1"}])

        store = MongoStore("mongodb://localhost", database_name="shop", client=client)
        assert store.distinct("orders", "items.productId") == [1, "s1"]
        collection.aggregate.assert_called_once_with(
            [
                {"$unwind": {"path": "$items.productId", "preserveNullAndEmptyArrays": True}},
                {"$group": {"_id": "$items.productId"}},
            ],
            allowDiskUse=True,
        )
        collection.distinct.assert_not_called()

    def test_close_closes_client(self):
        client, _ = self._client()
        MongoStore("mongodb://localhost", database_name="shop", client=client).close()
        client.close.assert_called_once()


class TestGetStore:

    def test_redact_url(self):
        assert redact_url("mongodb://user:pw@host:27017/db") == "mongodb://host:27017/db"
        assert redact_url("sqlite:///x.db") == "sqlite:///x.db"

    def test_snapshot_path(self, temp_dir):
        path = temp_dir / "snap.json"
        path.write_text("{}", encoding="utf-8")
        assert isinstance(get_store(str(path)), MemoryStore)

    def test_sqlalchemy_url(self):
        store = get_store("sqlite://")
        assert isinstance(store, SqlStore)
        store.close()

    def test_empty_url(self):
        with pytest.raises(ValueError):
            get_store("")
