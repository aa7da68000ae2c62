"""
Document store base class.

Each backend (MongoDB, SQL via SQLAlchemy, in-memory snapshots) implements this
read-only interface. The auditor never writes through it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class DocumentStore(ABC):
    """Abstract base for read-only document store adapters."""

    @abstractmethod
    def list_collections(self) -> List[str]:
        """Return the names of all collections in the database."""
        pass

    @abstractmethod
    def count(self, collection: str) -> int:
        """Return the number of documents in a collection."""
        pass

    @abstractmethod
    def find(self, collection: str, limit: int) -> List[Dict[str, Any]]:
        """Return at most ``limit`` documents, in the store's natural order."""
        pass

    @abstractmethod
    def distinct(self, collection: str, field: str) -> List[Any]:
        """Return every distinct value of ``field`` across the whole collection."""
        pass

    def list_indexes(self, collection: str) -> List[Dict[str, Any]]:
        """Return index descriptions. Empty for stores without indexes."""
        return []

    def describe(self) -> str:
        """Short, credential-free name of the database for reports."""
        return type(self).__name__

    def close(self) -> None:
        """Release connections. Override if needed."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
