"""Document store adapters for the supported databases."""

from typing import Optional

from .base import DocumentStore
from .memory import MemoryStore
from .mongodb import MongoStore
from .sql import SqlStore

_MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


def redact_url(database_url: str) -> str:
    """Hide credentials: keep only what follows the last '@'."""
    if "@" not in database_url:
        return database_url
    scheme, sep, _ = database_url.partition("://")
    host_part = database_url.split("@")[-1]
    return f"{scheme}{sep}{host_part}" if sep else host_part


def get_store(database_url: str, database_name: Optional[str] = None) -> DocumentStore:
    """Get the store adapter for a database URL.

    Args:
        database_url: ``mongodb://``/``mongodb+srv://`` URL, a path to a
            ``.json`` snapshot, or any SQLAlchemy URL.
        database_name: MongoDB database, or SQL schema, to audit.

    Returns:
        DocumentStore instance.
    """
    if not database_url:
        raise ValueError("A database URL is required")
    if database_url.startswith(_MONGO_SCHEMES):
        return MongoStore(database_url, database_name=database_name)
    if database_url.lower().endswith(".json") and "://" not in database_url:
        return MemoryStore.from_json(database_url)
    return SqlStore(database_url, schema=database_name)


__all__ = [
    "DocumentStore",
    "MemoryStore",
    "MongoStore",
    "SqlStore",
    "get_store",
    "redact_url",
]
