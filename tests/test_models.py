"""Tests for result serialization."""

import json
from decimal import Decimal

from bson import Decimal128, ObjectId

from docdb_audit.auditor import DatabaseAuditor
from docdb_audit.models import AuditResult, RelationshipCheck, RelationshipDescriptor, to_jsonable


class TestJsonRoundTrip:
    """Every artifact must survive a trip through JSON text."""

    def test_audit_result_round_trip(self, shop_store, serial_config):
        result = DatabaseAuditor(shop_store, serial_config).run()
        text = json.dumps(result.to_dict())
        restored = AuditResult.from_dict(json.loads(text))

        assert restored == result
        assert restored.schema_reports() == result.schema_reports()
        assert restored.quality_reports() == result.quality_reports()
        assert restored.migrations == result.migrations

    def test_metadata_block(self, shop_store, serial_config):
        data = DatabaseAuditor(shop_store, serial_config).run().to_dict()
        assert data["metadata"]["database"] == "shop"
        assert data["metadata"]["total_collections"] == 5
        assert data["metadata"]["cancelled"] is False


class TestRelationshipCheck:

    def test_valid_percent_of_empty_check(self):
        check = RelationshipCheck(descriptor=RelationshipDescriptor("a", "b", "c"))
        assert check.valid_percent == 0.0

    def test_to_dict_has_display_paths(self):
        descriptor = RelationshipDescriptor("orders", "items", "products", is_array=True, array_item_field="productId")
        data = RelationshipCheck(descriptor=descriptor, checked=3, valid=2, invalid=1).to_dict()
        assert data["from"] == "orders.items.productId"
        assert data["to"] == "products._id"
        assert data["valid_percent"] == 66.7


class TestToJsonable:

    def test_bson_values(self):
        oid = ObjectId()
        assert to_jsonable(oid) == str(oid)
        assert to_jsonable(Decimal128("1.5")) == 1.5
        assert to_jsonable(Decimal("2.25")) == 2.25
        assert to_jsonable({"k": (1, 2)}) == {"k": [1, 2]}
