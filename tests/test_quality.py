"""Tests for the data quality scorer."""

from docdb_audit.models import QualityCheck
from docdb_audit.quality import score_quality
from docdb_audit.rules import QualityRules


def _checks(report):
    return [issue.check for issue in report.issues]


class TestIdentityChecks:
    """Tests for identity field checks."""

    def test_missing_identity(self):
        report = score_quality([{"name": "x"}])
        assert _checks(report) == [QualityCheck.MISSING_IDENTITY]
        assert str(report.issues[0]) == "Document 0: Missing _id field"

    def test_dual_identity_and_bare_price(self):
        report = score_quality([{"_id": 1, "id": 1, "price": 500}])
        assert _checks(report) == [QualityCheck.DUAL_IDENTITY, QualityCheck.PRICE_SHAPE]
        assert report.total_issues == 2

    def test_no_dual_identity_without_primary(self):
        report = score_quality([{"id": 1}])
        assert QualityCheck.DUAL_IDENTITY not in _checks(report)


class TestBooleanDrift:
    """Tests for boolean drift detection."""

    def test_string_booleans(self):
        report = score_quality([{"_id": 1, "isActive": "true", "note": "false"}])
        assert report.count(QualityCheck.BOOLEAN_DRIFT) == 2

    def test_numeric_boolean_needs_name_hint(self):
        report = score_quality([{"_id": 1, "hasStock": 1, "quantity": 1, "flag": 0}])
        fields = [i.field for i in report.issues if i.check is QualityCheck.BOOLEAN_DRIFT]
        assert fields == ["hasStock"]

    def test_real_booleans_are_fine(self):
        report = score_quality([{"_id": 1, "isActive": True}])
        assert report.total_issues == 0

    def test_name_hints_are_configurable(self):
        rules = QualityRules(boolean_name_hints=("enabled",))
        report = score_quality([{"_id": 1, "enabled": 0, "isActive": 1}], rules)
        fields = [i.field for i in report.issues]
        assert fields == ["enabled"]


class TestShapeChecks:
    """Tests for price, rating and image shape checks."""

    def test_canonical_price_object_passes(self):
        report = score_quality([{"_id": 1, "price": {"current": 10}}])
        assert report.total_issues == 0

    def test_null_canonical_price_subfield_counts_as_present(self):
        report = score_quality([{"_id": 1, "price": {"current": None}}])
        assert report.total_issues == 0

    def test_price_object_without_canonical_subfield(self):
        report = score_quality([{"_id": 1, "pricing": {"amount": 10}}])
        assert _checks(report) == [QualityCheck.PRICE_SHAPE]
        assert report.issues[0].field == "pricing"

    def test_bare_rating(self):
        report = score_quality([{"_id": 1, "rating": 4.5}])
        assert _checks(report) == [QualityCheck.RATING_SHAPE]

    def test_rating_object_passes(self):
        report = score_quality([{"_id": 1, "ratings": {"average": 4.5, "count": 3}}])
        assert report.total_issues == 0

    def test_singular_image(self):
        report = score_quality([{"_id": 1, "image": "a.png"}])
        assert _checks(report) == [QualityCheck.IMAGE_NAMING]

    def test_singular_with_plural_passes(self):
        report = score_quality([{"_id": 1, "image": "a.png", "images": ["a.png"]}])
        assert report.total_issues == 0


class TestScoreQuality:
    """Tests for report totals and caps."""

    def test_empty_sample(self):
        report = score_quality([], collection="logs")
        assert report.total_docs == 0
        assert report.total_issues == 0
        assert report.issues == ()
        assert report.issue_counts == {}

    def test_issue_list_capped_totals_not(self):
        docs = [{"name": i} for i in range(80)]
        report = score_quality(docs, issue_cap=50)
        assert len(report.issues) == 50
        assert report.total_issues == 80
        assert report.count(QualityCheck.MISSING_IDENTITY) == 80

    def test_issues_refer_to_document_positions(self):
        report = score_quality([{"_id": 1}, {"_id": 2, "rating": 3}])
        assert report.issues[0].document_index == 1
