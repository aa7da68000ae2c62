"""
Relationship Integrity Checker

References between collections exist only by convention, so they are checked
by set membership: the source collection is sampled, the target collection's
key values are enumerated in full, and every observed reference is classified
as valid, invalid (dangling) or missing.

The target side is never sampled. A reference to a target document that
merely fell outside a sample would otherwise be reported as dangling.

``checked`` counts documents for scalar descriptors and array items for
array descriptors. The asymmetry is intentional: an array descriptor
classifies every element of the array on its own.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Event, Lock
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from bson import Decimal128

from .models import RelationshipCheck, RelationshipDescriptor, to_jsonable
from .stores.base import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 100
ORPHAN_SAMPLE_CAP = 5

_MISSING = object()


def get_nested_value(doc: Any, path: str) -> Any:
    """Resolve a dotted path; None when any step is absent."""
    current = doc
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


class TargetIdCache:
    """Stringified target key sets, shared by descriptors within one run."""

    def __init__(self, store: DocumentStore):
        self._store = store
        self._sets: Dict[Tuple[str, str], FrozenSet[str]] = {}
        self._lock = Lock()
        self.misses = 0

    def get(self, collection: str, field: str) -> FrozenSet[str]:
        key = (collection, field)
        with self._lock:
            existing = self._sets.get(key)
            if existing is not None:
                return existing
            values = self._store.distinct(collection, field)
            ids = frozenset(_ref_key(v) for v in values if v is not None)
            self._sets[key] = ids
            self.misses += 1
            return ids


def _ref_key(value: Any) -> str:
    """Comparison key for a reference value; integral numbers match across numeric types."""
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return str(int(value))
    return str(value)


def _classify(value: Any, target_ids: FrozenSet[str]) -> str:
    if value is None or value == "":
        return "missing"
    return "valid" if _ref_key(value) in target_ids else "invalid"


def _references(doc: Mapping[str, Any], descriptor: RelationshipDescriptor) -> Iterable[Any]:
    """Yield the reference values one source document contributes."""
    if not descriptor.is_array:
        yield get_nested_value(doc, descriptor.source_field)
        return

    items = get_nested_value(doc, descriptor.source_field)
    if not isinstance(items, (list, tuple)):
        return
    for item in items:
        if descriptor.array_item_field:
            yield get_nested_value(item, descriptor.array_item_field)
        else:
            yield item


def evaluate_relationship(
    descriptor: RelationshipDescriptor,
    source_docs: Sequence[Mapping[str, Any]],
    target_ids: FrozenSet[str],
    orphan_sample_cap: int = ORPHAN_SAMPLE_CAP,
) -> RelationshipCheck:
    """Classify the references of already-fetched source documents."""
    counts = {"valid": 0, "invalid": 0, "missing": 0}
    orphans: List[Dict[str, Any]] = []

    for doc in source_docs:
        for value in _references(doc, descriptor):
            outcome = _classify(value, target_ids)
            counts[outcome] += 1
            if outcome == "invalid" and len(orphans) < orphan_sample_cap:
                orphans.append({
                    "source_id": to_jsonable(doc.get("_id")),
                    "value": to_jsonable(value),
                })

    checked = sum(counts.values())
    return RelationshipCheck(
        descriptor=descriptor,
        checked=checked,
        valid=counts["valid"],
        invalid=counts["invalid"],
        missing=counts["missing"],
        orphan_samples=tuple(orphans),
    )


def check_relationship(
    store: DocumentStore,
    descriptor: RelationshipDescriptor,
    collections: Iterable[str],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    target_cache: Optional[TargetIdCache] = None,
    orphan_sample_cap: int = ORPHAN_SAMPLE_CAP,
) -> Optional[RelationshipCheck]:
    """Check one descriptor.

    Returns None when either collection is not in ``collections``: the
    descriptor list is shared configuration and may name collections a
    deployment does not have. Query failures are recorded on the result.
    """
    available = set(collections)
    if descriptor.source_collection not in available or descriptor.target_collection not in available:
        logger.debug(f"Skipping {descriptor.source_path} -> {descriptor.target_path}: collection not present")
        return None

    cache = target_cache or TargetIdCache(store)
    try:
        source_docs = store.find(descriptor.source_collection, limit=sample_size)[:sample_size]
        target_ids = cache.get(descriptor.target_collection, descriptor.target_field)
    except Exception as e:
        logger.warning(f"Error checking {descriptor.source_path} -> {descriptor.target_path}: {e}")
        return RelationshipCheck(descriptor=descriptor, error=str(e))

    result = evaluate_relationship(descriptor, source_docs, target_ids, orphan_sample_cap)
    logger.info(
        f"  {descriptor.source_path} -> {descriptor.target_path}: "
        f"{result.valid_percent}% valid ({result.checked} checked)"
    )
    if result.invalid:
        logger.warning(f"    {result.invalid} orphaned reference(s) in {descriptor.source_path}")
    return result


def check_relationships(
    store: DocumentStore,
    descriptors: Sequence[RelationshipDescriptor],
    collections: Iterable[str],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    target_cache: Optional[TargetIdCache] = None,
    cancel_event: Optional[Event] = None,
    max_workers: int = 1,
    orphan_sample_cap: int = ORPHAN_SAMPLE_CAP,
) -> List[RelationshipCheck]:
    """Check every descriptor; skipped descriptors are omitted.

    Results keep the descriptor order. With ``max_workers > 1`` descriptors
    run on a thread pool. A set ``cancel_event`` stops new descriptors from
    starting; whatever finished is returned.
    """
    available = frozenset(collections)
    cache = target_cache or TargetIdCache(store)

    def _run(descriptor: RelationshipDescriptor):
        if cancel_event is not None and cancel_event.is_set():
            return _MISSING
        return check_relationship(
            store, descriptor, available,
            sample_size=sample_size, target_cache=cache, orphan_sample_cap=orphan_sample_cap,
        )

    if max_workers <= 1:
        outcomes = []
        for descriptor in descriptors:
            outcome = _run(descriptor)
            if outcome is _MISSING:
                break
            outcomes.append(outcome)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(_run, descriptors))

    return [r for r in outcomes if r is not None and r is not _MISSING]
