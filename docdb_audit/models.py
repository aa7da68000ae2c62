"""Report values passed between the audit stages.

Every value here is frozen once built. Each type has ``to_dict()`` producing
plain JSON data and a ``from_dict()`` that rebuilds an equal value, so the
artifacts can be written to disk and read back without loss.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from bson import Decimal128, ObjectId


class TypeTag(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    OBJECT_ID = "objectId"
    BINARY = "binary"


def classify_value(value: Any) -> TypeTag:
    """Return the TypeTag for a raw document value.

    bool is tested before the numeric types since it subclasses int.
    Unknown scalar types are reported as strings, which is how they end up
    once serialized.
    """
    if value is None:
        return TypeTag.NULL
    if isinstance(value, bool):
        return TypeTag.BOOL
    if isinstance(value, (int, float, Decimal, Decimal128)):
        return TypeTag.NUMBER
    if isinstance(value, str):
        return TypeTag.STRING
    if isinstance(value, (datetime, date)):
        return TypeTag.DATE
    if isinstance(value, ObjectId):
        return TypeTag.OBJECT_ID
    if isinstance(value, (bytes, bytearray)):
        return TypeTag.BINARY
    if isinstance(value, Mapping):
        return TypeTag.OBJECT
    if isinstance(value, (list, tuple, set, frozenset)):
        return TypeTag.ARRAY
    return TypeTag.STRING


def to_jsonable(value: Any) -> Any:
    """Convert a raw document value into plain JSON data."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value
    if isinstance(value, (Decimal, Decimal128)):
        return float(str(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return str(value)


# ============================================================================
# Schema inference
# ============================================================================

@dataclass(frozen=True)
class FieldStat:
    presence_count: int
    observed_types: frozenset
    null_count: int
    sample_values: Tuple[Any, ...] = ()
    presence_ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "presence_count": self.presence_count,
            "observed_types": sorted(t.value for t in self.observed_types),
            "null_count": self.null_count,
            "sample_values": list(self.sample_values),
            "presence_ratio": self.presence_ratio,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldStat":
        return cls(
            presence_count=int(data["presence_count"]),
            observed_types=frozenset(TypeTag(t) for t in data.get("observed_types", [])),
            null_count=int(data["null_count"]),
            sample_values=tuple(data.get("sample_values", [])),
            presence_ratio=float(data.get("presence_ratio", 0.0)),
        )


@dataclass(frozen=True)
class SchemaReport:
    collection: str
    sample_size: int
    fields: Dict[str, FieldStat] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def has_field(self, path: str) -> bool:
        return path in self.fields

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "sample_size": self.sample_size,
            "fields": {path: stat.to_dict() for path, stat in self.fields.items()},
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchemaReport":
        return cls(
            collection=data["collection"],
            sample_size=int(data["sample_size"]),
            fields={path: FieldStat.from_dict(stat) for path, stat in (data.get("fields") or {}).items()},
            error=data.get("error"),
        )


# ============================================================================
# Data quality
# ============================================================================

class QualityCheck(str, Enum):
    MISSING_IDENTITY = "missing_identity"
    DUAL_IDENTITY = "dual_identity"
    BOOLEAN_DRIFT = "boolean_drift"
    PRICE_SHAPE = "price_shape"
    RATING_SHAPE = "rating_shape"
    IMAGE_NAMING = "image_naming"


@dataclass(frozen=True)
class QualityIssue:
    document_index: int
    check: QualityCheck
    message: str
    field: Optional[str] = None

    def __str__(self) -> str:
        return f"Document {self.document_index}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_index": self.document_index,
            "check": self.check.value,
            "message": self.message,
            "field": self.field,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityIssue":
        return cls(
            document_index=int(data["document_index"]),
            check=QualityCheck(data["check"]),
            message=data["message"],
            field=data.get("field"),
        )


@dataclass(frozen=True)
class QualityReport:
    collection: str
    total_docs: int
    issues: Tuple[QualityIssue, ...] = ()
    total_issues: int = 0
    issue_counts: Dict[QualityCheck, int] = field(default_factory=dict)

    def count(self, check: QualityCheck) -> int:
        """Unbounded number of issues raised by one check."""
        return self.issue_counts.get(check, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "total_docs": self.total_docs,
            "issues": [issue.to_dict() for issue in self.issues],
            "total_issues": self.total_issues,
            "issue_counts": {check.value: n for check, n in self.issue_counts.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityReport":
        return cls(
            collection=data["collection"],
            total_docs=int(data["total_docs"]),
            issues=tuple(QualityIssue.from_dict(i) for i in data.get("issues", [])),
            total_issues=int(data.get("total_issues", 0)),
            issue_counts={QualityCheck(k): int(v) for k, v in (data.get("issue_counts") or {}).items()},
        )


# ============================================================================
# Relationships
# ============================================================================

@dataclass(frozen=True)
class RelationshipDescriptor:
    source_collection: str
    source_field: str
    target_collection: str
    target_field: str = "_id"
    is_array: bool = False
    array_item_field: Optional[str] = None

    @property
    def source_path(self) -> str:
        path = f"{self.source_collection}.{self.source_field}"
        if self.is_array and self.array_item_field:
            path += f".{self.array_item_field}"
        return path

    @property
    def target_path(self) -> str:
        return f"{self.target_collection}.{self.target_field}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_collection": self.source_collection,
            "source_field": self.source_field,
            "target_collection": self.target_collection,
            "target_field": self.target_field,
            "is_array": self.is_array,
            "array_item_field": self.array_item_field,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RelationshipDescriptor":
        return cls(
            source_collection=data["source_collection"],
            source_field=data["source_field"],
            target_collection=data["target_collection"],
            target_field=data.get("target_field") or "_id",
            is_array=bool(data.get("is_array", False)),
            array_item_field=data.get("array_item_field"),
        )


@dataclass(frozen=True)
class RelationshipCheck:
    """Outcome of one descriptor.

    For scalar descriptors ``checked`` is the number of sampled source
    documents. For array descriptors it is the number of array items seen
    across the sampled documents, so the two kinds are not comparable.
    """

    descriptor: RelationshipDescriptor
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    missing: int = 0
    orphan_samples: Tuple[Dict[str, Any], ...] = ()
    error: Optional[str] = None

    @property
    def valid_percent(self) -> float:
        if self.checked == 0:
            return 0.0
        return round(self.valid / self.checked * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptor": self.descriptor.to_dict(),
            "from": self.descriptor.source_path,
            "to": self.descriptor.target_path,
            "checked": self.checked,
            "valid": self.valid,
            "invalid": self.invalid,
            "missing": self.missing,
            "valid_percent": self.valid_percent,
            "orphan_samples": [dict(s) for s in self.orphan_samples],
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RelationshipCheck":
        return cls(
            descriptor=RelationshipDescriptor.from_dict(data["descriptor"]),
            checked=int(data.get("checked", 0)),
            valid=int(data.get("valid", 0)),
            invalid=int(data.get("invalid", 0)),
            missing=int(data.get("missing", 0)),
            orphan_samples=tuple(dict(s) for s in data.get("orphan_samples", [])),
            error=data.get("error"),
        )


# ============================================================================
# Migration planning
# ============================================================================

class MigrationType(str, Enum):
    ID_STANDARDIZATION = "ID_STANDARDIZATION"
    PRICE_STRUCTURE = "PRICE_STRUCTURE"
    RATING_STRUCTURE = "RATING_STRUCTURE"
    IMAGE_STRUCTURE = "IMAGE_STRUCTURE"
    BOOLEAN_NORMALIZATION = "BOOLEAN_NORMALIZATION"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 1, Priority.MEDIUM: 2, Priority.LOW: 3}


@dataclass(frozen=True)
class MigrationTask:
    collection: str
    type: MigrationType
    priority: Priority
    description: str
    affected_docs: Optional[int] = None
    script: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "type": self.type.value,
            "priority": self.priority.value,
            "description": self.description,
            "affected_docs": self.affected_docs,
            "script": self.script,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MigrationTask":
        affected = data.get("affected_docs")
        return cls(
            collection=data["collection"],
            type=MigrationType(data["type"]),
            priority=Priority(data["priority"]),
            description=data["description"],
            affected_docs=int(affected) if affected is not None else None,
            script=data.get("script", ""),
        )


@dataclass(frozen=True)
class CollectionMigrations:
    collection: str
    tasks: Tuple[MigrationTask, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"collection": self.collection, "tasks": [t.to_dict() for t in self.tasks]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CollectionMigrations":
        return cls(
            collection=data["collection"],
            tasks=tuple(MigrationTask.from_dict(t) for t in data.get("tasks", [])),
        )


@dataclass(frozen=True)
class MigrationPhase:
    number: int
    priority: Priority
    title: str
    tasks: Tuple[MigrationTask, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "priority": self.priority.value,
            "title": self.title,
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MigrationPhase":
        return cls(
            number=int(data["number"]),
            priority=Priority(data["priority"]),
            title=data["title"],
            tasks=tuple(MigrationTask.from_dict(t) for t in data.get("tasks", [])),
        )


# ============================================================================
# Whole-run results
# ============================================================================

@dataclass(frozen=True)
class CollectionAnalysis:
    name: str
    schema: SchemaReport
    quality: QualityReport
    document_count: Optional[int] = None
    indexes: Tuple[Dict[str, Any], ...] = ()
    sample_document: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "document_count": self.document_count,
            "indexes": [dict(i) for i in self.indexes],
            "schema": self.schema.to_dict(),
            "quality": self.quality.to_dict(),
            "sample_document": self.sample_document,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CollectionAnalysis":
        count = data.get("document_count")
        return cls(
            name=data["name"],
            schema=SchemaReport.from_dict(data["schema"]),
            quality=QualityReport.from_dict(data["quality"]),
            document_count=int(count) if count is not None else None,
            indexes=tuple(dict(i) for i in data.get("indexes", [])),
            sample_document=data.get("sample_document"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class AuditResult:
    database: str
    generated_at: str
    collections: Dict[str, CollectionAnalysis] = field(default_factory=dict)
    relationships: Tuple[RelationshipCheck, ...] = ()
    migrations: Tuple[CollectionMigrations, ...] = ()
    phases: Tuple[MigrationPhase, ...] = ()
    cancelled: bool = False

    def schema_reports(self) -> Dict[str, SchemaReport]:
        return {name: c.schema for name, c in self.collections.items()}

    def quality_reports(self) -> Dict[str, QualityReport]:
        return {name: c.quality for name, c in self.collections.items()}

    @property
    def total_tasks(self) -> int:
        return sum(len(m.tasks) for m in self.migrations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": {
                "database": self.database,
                "generated_at": self.generated_at,
                "cancelled": self.cancelled,
                "total_collections": len(self.collections),
            },
            "collections": {name: c.to_dict() for name, c in self.collections.items()},
            "relationships": [r.to_dict() for r in self.relationships],
            "migrations": [m.to_dict() for m in self.migrations],
            "phases": [p.to_dict() for p in self.phases],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditResult":
        meta = data.get("metadata", {})
        return cls(
            database=meta.get("database", ""),
            generated_at=meta.get("generated_at", ""),
            collections={
                name: CollectionAnalysis.from_dict(c) for name, c in (data.get("collections") or {}).items()
            },
            relationships=tuple(RelationshipCheck.from_dict(r) for r in data.get("relationships", [])),
            migrations=tuple(CollectionMigrations.from_dict(m) for m in data.get("migrations", [])),
            phases=tuple(MigrationPhase.from_dict(p) for p in data.get("phases", [])),
            cancelled=bool(meta.get("cancelled", False)),
        )
