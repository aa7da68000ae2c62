"""MongoDB store adapter."""

import logging
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import ConfigurationError

from ..models import to_jsonable
from .base import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "test"


class MongoStore(DocumentStore):
    """MongoDB adapter. Database comes from ``database_name``, else the URL, else ``test``."""

    def __init__(self, url: str, database_name: Optional[str] = None, client: Optional[MongoClient] = None,
                 timeout_ms: int = 10000):
        self.url = url
        self.client = client if client is not None else MongoClient(
            url,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        if database_name:
            self.db = self.client[database_name]
        else:
            try:
                self.db = self.client.get_default_database()
            except ConfigurationError:
                self.db = self.client[DEFAULT_DATABASE]
        logger.debug(f"Using MongoDB database '{self.db.name}'")

    def list_collections(self) -> List[str]:
        return sorted(self.db.list_collection_names())

    def count(self, collection: str) -> int:
        return int(self.db[collection].count_documents({}))

    def find(self, collection: str, limit: int) -> List[Dict[str, Any]]:
        return list(self.db[collection].find({}).limit(limit))

    def distinct(self, collection: str, field: str) -> List[Any]:
        """Distinct values via a cursor, so large targets are not bound by the 16MB reply limit.

        Array values contribute each element, as with ``Collection.distinct``.
        """
        path = f"${field}"
        pipeline = [
            {"$unwind": {"path": path, "preserveNullAndEmptyArrays": True}},
            {"$group": {"_id": path}},
        ]
        cursor = self.db[collection].aggregate(pipeline, allowDiskUse=True)
        return [doc["_id"] for doc in cursor if doc["_id"] is not None]

    def list_indexes(self, collection: str) -> List[Dict[str, Any]]:
        return [to_jsonable(dict(ix)) for ix in self.db[collection].list_indexes()]

    def describe(self) -> str:
        return self.db.name

    def close(self) -> None:
        self.client.close()
