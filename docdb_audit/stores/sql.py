"""SQL store adapter: tables are collections, rows are documents.

JSON columns arrive as nested dicts/lists, so a relational database that keeps
semi-structured data in JSON columns can be audited the same way as MongoDB.
"""

import logging
from threading import Lock
from typing import Any, Dict, List, Optional

from sqlalchemy import MetaData, Table, create_engine, distinct, func, inspect, select
from sqlalchemy.engine import Engine

from ..models import to_jsonable
from .base import DocumentStore

logger = logging.getLogger(__name__)


def get_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine from a database URL with connection pooling."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False}, echo=False)
    connect_args = {"timeout": 10} if database_url.startswith("mssql+") else {"connect_timeout": 10}
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        connect_args=connect_args,
        echo=False,
    )


class SqlStore(DocumentStore):
    """SQLAlchemy-backed adapter, restricted to one schema."""

    def __init__(self, url: Optional[str] = None, schema: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None and not url:
            raise ValueError("SqlStore needs a database URL or an engine")
        self.engine = engine if engine is not None else get_engine(url)
        self.schema = schema or None
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}
        self._lock = Lock()

    def _table(self, name: str) -> Table:
        with self._lock:
            table = self._tables.get(name)
            if table is None:
                table = Table(name, self._metadata, schema=self.schema, autoload_with=self.engine)
                self._tables[name] = table
            return table

    def list_collections(self) -> List[str]:
        inspector = inspect(self.engine)
        return sorted(inspector.get_table_names(schema=self.schema))

    def count(self, collection: str) -> int:
        table = self._table(collection)
        with self.engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(table)).scalar_one())

    def find(self, collection: str, limit: int) -> List[Dict[str, Any]]:
        table = self._table(collection)
        with self.engine.connect() as conn:
            rows = conn.execute(select(table).limit(limit)).mappings().fetchall()
        return [dict(r) for r in rows]

    def distinct(self, collection: str, field: str) -> List[Any]:
        table = self._table(collection)
        if field not in table.c:
            raise KeyError(f"Column '{field}' not found in table '{collection}'")
        column = table.c[field]
        with self.engine.connect() as conn:
            rows = conn.execute(select(distinct(column)).where(column.is_not(None))).fetchall()
        return [r[0] for r in rows]

    def list_indexes(self, collection: str) -> List[Dict[str, Any]]:
        inspector = inspect(self.engine)
        indexes = []
        pk = inspector.get_pk_constraint(collection, schema=self.schema) or {}
        if pk.get("constrained_columns"):
            indexes.append({
                "name": pk.get("name") or "PRIMARY",
                "columns": list(pk["constrained_columns"]),
                "unique": True,
            })
        for ix in inspector.get_indexes(collection, schema=self.schema):
            indexes.append({
                "name": ix.get("name"),
                "columns": [c for c in (ix.get("column_names") or []) if c],
                "unique": bool(ix.get("unique", False)),
            })
        return [to_jsonable(ix) for ix in indexes]

    def describe(self) -> str:
        url = self.engine.url
        return str(url.database or url.host or self.engine.dialect.name)

    def close(self) -> None:
        self.engine.dispose()
