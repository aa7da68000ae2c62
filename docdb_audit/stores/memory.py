"""In-memory store, also used to audit a JSON snapshot of a database."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .base import DocumentStore


def _get_path(doc: Mapping[str, Any], path: str) -> Any:
    current: Any = doc
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _hashable(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    return value


class MemoryStore(DocumentStore):
    """Collections held as lists of dicts.

    ``distinct`` follows MongoDB semantics: array values contribute each
    element, and missing values are ignored.
    """

    def __init__(self, collections: Mapping[str, List[Dict[str, Any]]], name: str = "memory"):
        self._collections = {str(k): list(v) for k, v in collections.items()}
        self._indexes: Dict[str, List[Dict[str, Any]]] = {}
        self.name = name

    @classmethod
    def from_json(cls, path: str) -> "MemoryStore":
        """Load a snapshot shaped like ``{"collection": [doc, ...]}``."""
        snapshot_path = Path(path).expanduser()
        with open(snapshot_path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
            raise ValueError(f"{snapshot_path} must map collection names to lists of documents")
        return cls(data, name=snapshot_path.name)

    def set_indexes(self, collection: str, indexes: List[Dict[str, Any]]) -> None:
        self._indexes[collection] = list(indexes)

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        try:
            return self._collections[collection]
        except KeyError:
            raise LookupError(f"Collection not found: {collection}") from None

    def list_collections(self) -> List[str]:
        return sorted(self._collections)

    def count(self, collection: str) -> int:
        return len(self._docs(collection))

    def find(self, collection: str, limit: int) -> List[Dict[str, Any]]:
        return [dict(d) for d in self._docs(collection)[:limit]]

    def distinct(self, collection: str, field: str) -> List[Any]:
        seen = set()
        values: List[Any] = []
        for doc in self._docs(collection):
            value = _get_path(doc, field)
            items = value if isinstance(value, list) else [value]
            for item in items:
                if item is None:
                    continue
                key = _hashable(item)
                if key in seen:
                    continue
                seen.add(key)
                values.append(item)
        return values

    def list_indexes(self, collection: str) -> List[Dict[str, Any]]:
        self._docs(collection)
        return list(self._indexes.get(collection, []))

    def describe(self) -> str:
        return self.name
