"""Tests for audit orchestration."""

import threading

import pytest

from docdb_audit.auditor import DatabaseAuditor
from docdb_audit.config import AuditConfig
from docdb_audit.errors import AuditConnectionError
from docdb_audit.models import MigrationType, Priority
from docdb_audit.schema_inference import REDACTED

from conftest import FailingStore, shop_collections


class TestRun:
    """Tests for a full audit over the shop dataset."""

    def test_full_audit(self, shop_store):
        result = DatabaseAuditor(shop_store, AuditConfig(max_workers=4)).run()

        assert result.database == "shop"
        assert list(result.collections) == ["logs", "orders", "products", "stores", "users"]
        assert not result.cancelled

        products = result.collections["products"]
        assert products.document_count == 3
        assert products.schema.has_field("price.current")
        assert products.quality.total_issues > 0

        pairs = {(r.descriptor.source_path, r.descriptor.target_path) for r in result.relationships}
        assert ("products.storeId", "stores._id") in pairs
        assert ("orders.items.productId", "products._id") in pairs
        # reviews, carts... are not in this database
        assert all(r.descriptor.source_collection in result.collections for r in result.relationships)

        store_refs = next(r for r in result.relationships if r.descriptor.source_path == "products.storeId")
        assert (store_refs.valid, store_refs.invalid, store_refs.missing) == (1, 1, 1)

    def test_plan_and_phases(self, shop_store, serial_config):
        result = DatabaseAuditor(shop_store, serial_config).run()

        plan = {m.collection: [t.type for t in m.tasks] for m in result.migrations}
        assert MigrationType.ID_STANDARDIZATION in plan["products"]
        assert MigrationType.BOOLEAN_NORMALIZATION in plan["stores"]
        assert [p.priority for p in result.phases] == [Priority.HIGH, Priority.MEDIUM, Priority.LOW]
        assert result.total_tasks == sum(len(p.tasks) for p in result.phases)

    def test_empty_collection(self, shop_store, serial_config):
        logs = DatabaseAuditor(shop_store, serial_config).run().collections["logs"]
        assert logs.document_count == 0
        assert logs.schema.fields == {}
        assert logs.quality.total_issues == 0
        assert logs.sample_document is None

    def test_sample_document_is_redacted(self, shop_store, serial_config):
        users = DatabaseAuditor(shop_store, serial_config).run().collections["users"]
        assert users.sample_document["password"] == REDACTED
        assert users.sample_document["email"] == "a@example.com"


class TestFailures:
    """Tests for error isolation."""

    def test_catalog_failure_is_fatal(self):
        store = FailingStore({}, catalog_error=OSError("connection refused"))
        with pytest.raises(AuditConnectionError):
            DatabaseAuditor(store).run()

    def test_connection_error_is_builtin_connection_error(self):
        store = FailingStore({}, catalog_error=OSError("connection refused"))
        with pytest.raises(ConnectionError):
            DatabaseAuditor(store).run()

    def test_collection_failure_is_isolated(self, serial_config):
        store = FailingStore(shop_collections(), fail_on={("find", "products")})
        result = DatabaseAuditor(store, serial_config.with_overrides(query_retries=0)).run()

        products = result.collections["products"]
        assert products.error is not None
        assert not products.schema.ok
        assert result.collections["stores"].error is None
        assert all(m.collection != "products" for m in result.migrations)

    def test_query_retried_once(self, serial_config):
        store = FailingStore(shop_collections(), fail_on={("count", "stores")}, fail_times=1)
        result = DatabaseAuditor(store, serial_config).run()

        assert result.collections["stores"].error is None
        assert result.collections["stores"].document_count == 2
        assert store.calls[("count", "stores")] == 2

    def test_retries_exhausted(self, serial_config):
        store = FailingStore(shop_collections(), fail_on={("count", "stores")})
        result = DatabaseAuditor(store, serial_config.with_overrides(query_retries=2)).run()

        assert "count failed" in result.collections["stores"].error
        assert store.calls[("count", "stores")] == 3


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_before_run(self, shop_store):
        cancel = threading.Event()
        cancel.set()
        result = DatabaseAuditor(shop_store, AuditConfig(max_workers=2)).run(cancel_event=cancel)

        assert result.cancelled
        assert result.collections == {}
        assert result.relationships == ()

    def test_cancel_midway_keeps_completed_work(self, shop_store):
        cancel = threading.Event()

        class CancellingStore(FailingStore):
            def count(self, collection):
                if collection == "orders":
                    cancel.set()
                return super().count(collection)

        store = CancellingStore(shop_collections())
        result = DatabaseAuditor(store, AuditConfig(max_workers=1)).run(cancel_event=cancel)

        assert result.cancelled
        # catalog order: logs, orders, products...; orders was already running
        assert list(result.collections) == ["logs", "orders"]
        assert result.relationships == ()


class TestAnalyzeCollection:

    def test_single_collection(self, shop_store):
        analysis = DatabaseAuditor(shop_store).analyze_collection("stores")
        assert analysis.name == "stores"
        assert analysis.document_count == 2
        assert analysis.quality.total_docs == 2

    def test_unknown_collection_is_an_error_marker(self, shop_store):
        analysis = DatabaseAuditor(shop_store).analyze_collection("nope")
        assert analysis.error is not None
