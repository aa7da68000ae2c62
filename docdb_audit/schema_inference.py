"""
Schema inference by bounded sampling.

A collection has no declared schema, so one is inferred from at most
``sample_size`` documents. Every key seen is recorded under its dotted path
with how often it was present, how often it was null, which value types were
observed and a few example values. Nested objects are walked recursively;
arrays are recorded but not entered.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .models import FieldStat, SchemaReport, TypeTag, classify_value, to_jsonable
from .stores.base import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 10
SAMPLE_VALUE_CAP = 5
REDACTED = "[REDACTED]"


@dataclass
class _FieldAccumulator:
    presence_count: int = 0
    null_count: int = 0
    observed_types: Set[TypeTag] = field(default_factory=set)
    sample_values: List[Any] = field(default_factory=list)

    def freeze(self, sample_size: int) -> FieldStat:
        ratio = round(self.presence_count / sample_size, 4) if sample_size else 0.0
        return FieldStat(
            presence_count=self.presence_count,
            observed_types=frozenset(self.observed_types),
            null_count=self.null_count,
            sample_values=tuple(self.sample_values),
            presence_ratio=ratio,
        )


def sanitize_document(doc: Mapping[str, Any], redacted_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """Return a JSON-safe copy of ``doc`` with sensitive keys masked at any depth."""
    keys = set(redacted_keys)

    def _walk(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                str(k): (REDACTED if k in keys and v is not None else _walk(v))
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [_walk(v) for v in value]
        return to_jsonable(value)

    return _walk(doc)


def _extract_fields(
    doc: Mapping[str, Any],
    prefix: str,
    stats: Dict[str, _FieldAccumulator],
    redacted_keys: Set[str],
    sample_value_cap: int,
) -> None:
    for key, value in doc.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        acc = stats.get(path)
        if acc is None:
            acc = stats[path] = _FieldAccumulator()

        acc.presence_count += 1
        if value is None:
            acc.null_count += 1
            continue

        tag = classify_value(value)
        acc.observed_types.add(tag)
        if len(acc.sample_values) < sample_value_cap:
            if key in redacted_keys:
                acc.sample_values.append(REDACTED)
            else:
                acc.sample_values.append(sanitize_document({"v": value}, redacted_keys)["v"])

        if tag is TypeTag.OBJECT:
            _extract_fields(value, path, stats, redacted_keys, sample_value_cap)


def build_schema_report(
    collection: str,
    docs: List[Mapping[str, Any]],
    redacted_keys: Iterable[str] = (),
    sample_value_cap: int = SAMPLE_VALUE_CAP,
) -> SchemaReport:
    """Build a SchemaReport from already-fetched documents."""
    stats: Dict[str, _FieldAccumulator] = {}
    keys = set(redacted_keys)
    for doc in docs:
        _extract_fields(doc, "", stats, keys, sample_value_cap)

    sample_size = len(docs)
    return SchemaReport(
        collection=collection,
        sample_size=sample_size,
        fields={path: acc.freeze(sample_size) for path, acc in stats.items()},
    )


def infer_schema(
    store: DocumentStore,
    collection: str,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    redacted_keys: Iterable[str] = (),
    sample_value_cap: int = SAMPLE_VALUE_CAP,
    docs: Optional[List[Mapping[str, Any]]] = None,
) -> Tuple[SchemaReport, List[Mapping[str, Any]]]:
    """Sample a collection and infer its schema.

    Returns the report and the sampled documents so the quality scorer can run
    on the same sample. If the collection cannot be read, the report carries
    the error message and the document list is empty; nothing is raised.
    Pass ``docs`` to skip fetching when the caller already holds the sample.
    """
    if docs is None:
        try:
            docs = store.find(collection, limit=sample_size)[:sample_size]
        except Exception as e:
            logger.warning(f"Could not sample collection '{collection}': {e}")
            return SchemaReport(collection=collection, sample_size=0, error=str(e)), []

    report = build_schema_report(collection, docs, redacted_keys, sample_value_cap)
    logger.debug(f"{collection}: {len(report.fields)} field path(s) from {report.sample_size} document(s)")
    return report, docs
