"""Heuristic rules for the quality scorer and the relationship descriptor list.

Defaults live here as data. A YAML file can replace any of them without
touching the checkers:

    quality:
      boolean_name_hints: [is, has, active, enabled]
      price_fields: [price, pricing, cost]
    relationships:
      - {source: products.storeId, target: stores._id}
      - {source: orders.items, item_field: productId, target: products._id}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import ConfigError
from .models import RelationshipDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityRules:
    primary_id_field: str = "_id"
    secondary_id_fields: Tuple[str, ...] = ("id",)
    boolean_string_literals: Tuple[str, ...] = ("true", "false")
    boolean_name_hints: Tuple[str, ...] = ("is", "has", "active")
    price_fields: Tuple[str, ...] = ("price", "pricing")
    price_canonical_subfields: Tuple[str, ...] = ("current", "selling")
    rating_fields: Tuple[str, ...] = ("rating", "ratings")
    singular_image_field: str = "image"
    plural_image_field: str = "images"
    redacted_keys: Tuple[str, ...] = ("password", "token", "apiKey", "api_key", "secret")

    def looks_boolean(self, field_name: str) -> bool:
        lower = field_name.lower()
        return any(hint.lower() in lower for hint in self.boolean_name_hints)


def _desc(source: str, field_name: str, target: str, item_field: Optional[str] = None,
          is_array: bool = False) -> RelationshipDescriptor:
    return RelationshipDescriptor(
        source_collection=source,
        source_field=field_name,
        target_collection=target,
        target_field="_id",
        is_array=is_array,
        array_item_field=item_field,
    )


DEFAULT_RELATIONSHIPS: Tuple[RelationshipDescriptor, ...] = (
    _desc("products", "storeId", "stores"),
    _desc("products", "categoryId", "categories"),
    _desc("products", "category", "categories"),
    _desc("orders", "items", "products", item_field="productId", is_array=True),
    _desc("orders", "userId", "users"),
    _desc("reviews", "productId", "products"),
    _desc("reviews", "storeId", "stores"),
    _desc("videos", "productId", "products"),
    _desc("videos", "storeId", "stores"),
    _desc("projects", "storeId", "stores"),
    _desc("offers", "applicableStores", "stores", is_array=True),
    _desc("wishlists", "userId", "users"),
    _desc("wishlists", "items", "products", item_field="productId", is_array=True),
    _desc("carts", "userId", "users"),
    _desc("carts", "items", "products", item_field="productId", is_array=True),
)


@dataclass(frozen=True)
class AuditRules:
    quality: QualityRules = field(default_factory=QualityRules)
    relationships: Tuple[RelationshipDescriptor, ...] = DEFAULT_RELATIONSHIPS


def _split_path(value: str, key: str) -> Tuple[str, str]:
    collection, sep, rest = str(value).partition(".")
    if not sep or not collection or not rest:
        raise ConfigError(f"relationship '{key}' must look like 'collection.field', got {value!r}")
    return collection, rest


def parse_relationship(entry: Dict[str, Any]) -> RelationshipDescriptor:
    """Build a descriptor from either the short or the long YAML form.

    Short form: ``{source: orders.items, item_field: productId, target: products._id}``.
    Long form: the keys of ``RelationshipDescriptor.to_dict()``.
    ``is_array`` defaults to true whenever ``item_field`` is given.
    """
    if not isinstance(entry, dict):
        raise ConfigError(f"relationship entry must be a mapping, got {type(entry).__name__}")
    if "source_collection" in entry:
        try:
            return RelationshipDescriptor.from_dict(entry)
        except KeyError as e:
            raise ConfigError(f"relationship entry missing key {e}") from None

    if "source" not in entry or "target" not in entry:
        raise ConfigError("relationship entry needs 'source' and 'target'")
    source_collection, source_field = _split_path(entry["source"], "source")
    target_collection, target_field = _split_path(entry["target"], "target")
    item_field = entry.get("item_field")
    return RelationshipDescriptor(
        source_collection=source_collection,
        source_field=source_field,
        target_collection=target_collection,
        target_field=target_field,
        is_array=bool(entry.get("is_array", item_field is not None)),
        array_item_field=item_field,
    )


def _parse_quality(data: Dict[str, Any]) -> QualityRules:
    if not isinstance(data, dict):
        raise ConfigError("'quality' must be a mapping")
    known = {f.name for f in fields(QualityRules)}
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"unknown quality rule '{key}'")
        overrides[key] = tuple(str(v) for v in value) if isinstance(value, list) else str(value)
    return replace(QualityRules(), **overrides)


def load_rules(path: Optional[str] = None) -> AuditRules:
    """Load rules from a YAML file over the defaults. No path means defaults."""
    if not path:
        return AuditRules()

    rules_path = Path(path).expanduser()
    try:
        with open(rules_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Could not read rules file {rules_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in rules file {rules_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Rules file {rules_path} must contain a mapping")

    quality = _parse_quality(data["quality"]) if "quality" in data else QualityRules()
    relationships: Tuple[RelationshipDescriptor, ...] = DEFAULT_RELATIONSHIPS
    if "relationships" in data:
        entries: List[Any] = data["relationships"] or []
        if not isinstance(entries, list):
            raise ConfigError("'relationships' must be a list")
        relationships = tuple(parse_relationship(e) for e in entries)

    logger.info(f"Loaded rules from {rules_path}: {len(relationships)} relationship(s)")
    return AuditRules(quality=quality, relationships=relationships)
