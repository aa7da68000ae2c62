"""Exception types raised by the auditor.

Only ``AuditConnectionError`` is meant to escape a run. Collection-level
failures are captured into the result data, and a relationship that points at
a missing collection is skipped rather than raised.
"""


class AuditError(Exception):
    """Base class for auditor errors."""


class AuditConnectionError(AuditError, ConnectionError):
    """The database could not be reached while building the collection catalog."""


class CollectionAccessError(AuditError):
    """One collection could not be read. Recorded on that collection's report."""

    def __init__(self, collection: str, message: str):
        super().__init__(f"{collection}: {message}")
        self.collection = collection
        self.message = message


class ConfigError(AuditError, ValueError):
    """Invalid configuration value or rules file."""
