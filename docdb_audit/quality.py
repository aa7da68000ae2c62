"""
Data Quality Scorer

Runs a fixed battery of heuristic checks over the sampled documents of one
collection. Each check looks at a single document and may add one issue;
checks are independent, so one document can contribute several issues.

Checks, in order:
- Missing identity field
- Dual identity (primary and secondary id both present)
- Boolean drift (string "true"/"false", or 0/1 in a boolean-sounding field)
- Price shape drift (bare number, or object without canonical subfields)
- Rating shape drift (bare number)
- Singular image field without its plural sibling

The returned issue list is capped for readability; ``total_issues`` and
``issue_counts`` always reflect every issue found.
"""

import logging
from collections import Counter
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from bson import Decimal128

from .models import QualityCheck, QualityIssue, QualityReport
from .rules import QualityRules

logger = logging.getLogger(__name__)

DEFAULT_ISSUE_CAP = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal, Decimal128)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _first_truthy(doc: Mapping[str, Any], names: Tuple[str, ...]) -> Tuple[Optional[str], Any]:
    for name in names:
        value = doc.get(name)
        if value:
            return name, value
    return None, None


# ---------------------------------------------------------------------------
# Checks. Each returns a list of (check, field, message).
# ---------------------------------------------------------------------------

Finding = Tuple[QualityCheck, Optional[str], str]


def check_missing_identity(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    if _is_blank(doc.get(rules.primary_id_field)):
        return [(QualityCheck.MISSING_IDENTITY, rules.primary_id_field,
                 f"Missing {rules.primary_id_field} field")]
    return []


def check_dual_identity(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    if _is_blank(doc.get(rules.primary_id_field)):
        return []
    for secondary in rules.secondary_id_fields:
        if not _is_blank(doc.get(secondary)):
            return [(QualityCheck.DUAL_IDENTITY, secondary,
                     f"Has both '{secondary}' and '{rules.primary_id_field}' fields")]
    return []


def check_boolean_drift(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    findings: List[Finding] = []
    for key, value in doc.items():
        if isinstance(value, str) and value in rules.boolean_string_literals:
            findings.append((QualityCheck.BOOLEAN_DRIFT, key,
                             f"Field '{key}' is string boolean: \"{value}\""))
        elif _is_number(value) and value in (0, 1) and rules.looks_boolean(key):
            findings.append((QualityCheck.BOOLEAN_DRIFT, key,
                             f"Field '{key}' might be boolean stored as number: {value}"))
    return findings


def check_price_shape(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    name, value = _first_truthy(doc, rules.price_fields)
    if name is None:
        return []
    if _is_number(value):
        return [(QualityCheck.PRICE_SHAPE, name, "Price is plain number, should be object")]
    if not isinstance(value, Mapping) or not any(
        sub in value for sub in rules.price_canonical_subfields
    ):
        expected = ", ".join(rules.price_canonical_subfields)
        return [(QualityCheck.PRICE_SHAPE, name,
                 f"Price object missing standard fields ({expected})")]
    return []


def check_rating_shape(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    name, value = _first_truthy(doc, rules.rating_fields)
    if name is not None and _is_number(value):
        return [(QualityCheck.RATING_SHAPE, name, "Rating is plain number, should be object")]
    return []


def check_image_naming(doc: Mapping[str, Any], rules: QualityRules) -> List[Finding]:
    singular, plural = rules.singular_image_field, rules.plural_image_field
    if doc.get(singular) and not doc.get(plural):
        return [(QualityCheck.IMAGE_NAMING, singular,
                 f"Using '{singular}' (singular) instead of '{plural}' (array)")]
    return []


CHECKS: Tuple[Callable[[Mapping[str, Any], QualityRules], List[Finding]], ...] = (
    check_missing_identity,
    check_dual_identity,
    check_boolean_drift,
    check_price_shape,
    check_rating_shape,
    check_image_naming,
)


def score_quality(
    docs: List[Mapping[str, Any]],
    rules: Optional[QualityRules] = None,
    collection: str = "",
    issue_cap: int = DEFAULT_ISSUE_CAP,
) -> QualityReport:
    """Run every check against every sampled document."""
    rules = rules or QualityRules()
    issues: List[QualityIssue] = []
    counts: Counter = Counter()

    for idx, doc in enumerate(docs):
        for check in CHECKS:
            for kind, field_name, message in check(doc, rules):
                counts[kind] += 1
                if len(issues) < issue_cap:
                    issues.append(QualityIssue(
                        document_index=idx, check=kind, message=message, field=field_name,
                    ))

    total = sum(counts.values())
    if total:
        logger.debug(f"{collection or '(collection)'}: {total} quality issue(s) in {len(docs)} document(s)")

    issue_counts: Dict[QualityCheck, int] = {kind: counts[kind] for kind in QualityCheck if counts[kind]}
    return QualityReport(
        collection=collection,
        total_docs=len(docs),
        issues=tuple(issues),
        total_issues=total,
        issue_counts=issue_counts,
    )
