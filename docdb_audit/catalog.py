"""Collection catalog: the starting list of work for an audit."""

import logging
from typing import List

from .errors import AuditConnectionError
from .stores.base import DocumentStore

logger = logging.getLogger(__name__)


def list_collections(store: DocumentStore) -> List[str]:
    """Return the sorted collection names, or raise AuditConnectionError."""
    try:
        collections = store.list_collections()
    except Exception as e:
        logger.error(f"Could not list collections in {store.describe()}: {e}")
        raise AuditConnectionError(f"Database unreachable: {e}") from e
    logger.info(f"Found {len(collections)} collections")
    return sorted(collections)
