"""Schema and referential-integrity auditor for schemaless document databases."""

from .auditor import DatabaseAuditor
from .catalog import list_collections
from .config import AuditConfig, load_env
from .errors import AuditConnectionError, AuditError, CollectionAccessError, ConfigError
from .models import AuditResult, RelationshipDescriptor
from .planner import build_phases, plan_migrations
from .quality import score_quality
from .relationships import check_relationship, check_relationships
from .rules import AuditRules, QualityRules, load_rules
from .schema_inference import infer_schema
from .stores import get_store

__version__ = "0.1.0"

__all__ = [
    "AuditConfig",
    "AuditConnectionError",
    "AuditError",
    "AuditResult",
    "AuditRules",
    "CollectionAccessError",
    "ConfigError",
    "DatabaseAuditor",
    "QualityRules",
    "RelationshipDescriptor",
    "build_phases",
    "check_relationship",
    "check_relationships",
    "get_store",
    "infer_schema",
    "list_collections",
    "load_env",
    "load_rules",
    "plan_migrations",
    "score_quality",
]
