"""Store holder and a TTL cache of audit results for the API."""

from __future__ import annotations

import logging
from threading import Lock
from time import monotonic
from typing import Any

from docdb_audit.auditor import DatabaseAuditor
from docdb_audit.catalog import list_collections
from docdb_audit.config import AuditConfig
from docdb_audit.models import AuditResult, CollectionAnalysis
from docdb_audit.rules import AuditRules
from docdb_audit.stores.base import DocumentStore

logger = logging.getLogger(__name__)

_store: DocumentStore | None = None
_config: AuditConfig = AuditConfig()
_rules: AuditRules = AuditRules()
_AUDIT_CACHE_TTL_SECONDS = 300
_audit_cache_lock = Lock()
_audit_cache: dict[str, dict[str, Any]] = {}


def set_store(store: DocumentStore, config: AuditConfig | None = None, rules: AuditRules | None = None) -> None:
    """Set the global store (called from app lifespan)."""
    global _store, _config, _rules
    _store = store
    _config = config or AuditConfig()
    _rules = rules or AuditRules()
    clear_cache()


def get_store() -> DocumentStore:
    """Return the global store. Raises RuntimeError if not set."""
    if _store is None:
        raise RuntimeError("Document store not initialized")
    return _store


def clear_cache() -> None:
    with _audit_cache_lock:
        _audit_cache.clear()


def _auditor() -> DatabaseAuditor:
    return DatabaseAuditor(get_store(), _config, _rules)


def _cached(key: str, build, refresh: bool = False):
    now = monotonic()
    with _audit_cache_lock:
        existing = _audit_cache.get(key)
        if existing and not refresh and now < float(existing["expires_at"]):
            return existing["value"]
        value = build()
        _audit_cache[key] = {"value": value, "expires_at": monotonic() + _AUDIT_CACHE_TTL_SECONDS}
        return value


def get_collections() -> list[str]:
    """Sorted collection names. Raises AuditConnectionError if unreachable."""
    return list_collections(get_store())


def get_audit(refresh: bool = False) -> AuditResult:
    """Full audit, cached for a few minutes unless ``refresh`` is set."""
    return _cached("audit", lambda: _auditor().run(), refresh=refresh)


def resolve_collection_name(name: str) -> str | None:
    """Resolve the requested collection to its stored name (case-insensitive)."""
    names = get_collections()
    if name in names:
        return name
    by_lower = {n.lower(): n for n in names}
    return by_lower.get((name or "").lower())


def get_collection_analysis(name: str, refresh: bool = False) -> CollectionAnalysis | None:
    """Analysis of one collection, or None when no such collection exists."""
    resolved = resolve_collection_name(name)
    if resolved is None:
        return None
    return _cached(f"collection:{resolved}", lambda: _auditor().analyze_collection(resolved), refresh=refresh)
