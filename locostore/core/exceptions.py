"""
Custom exception hierarchy for the loco store.

Provides specific exception types for the different failure modes:
configuration errors, I/O and schema problems, statement preparation and
execution failures, and logical errors raised by repositories and views.
"""


class LocoStoreError(Exception):
    """Base exception for all loco store errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(LocoStoreError):
    """Raised when configuration is invalid or missing."""
    pass


class DatabaseError(LocoStoreError):
    """Raised when SQLite operations fail."""
    pass


class DatabaseIOError(DatabaseError):
    """Raised when a database or backup path cannot be opened."""

    def __init__(self, message: str, path: str = None, details: dict = None):
        """
        Initialize I/O error.

        Args:
            message: Error description.
            path: The path that could not be opened.
            details: Additional context.
        """
        super().__init__(message, details)
        self.path = path


class SchemaError(DatabaseError):
    """Raised when the store schema cannot be created or migrated."""
    pass


class SchemaVersionError(SchemaError):
    """Raised when the stored schema is newer than this build supports."""

    def __init__(self, found: int, supported: int):
        super().__init__(
            f"Unsupported schema version {found} (supported: {supported})",
            {"found": found, "supported": supported}
        )
        self.found = found
        self.supported = supported


class StatementPreparationError(DatabaseError):
    """Raised when a statement fails to compile."""

    def __init__(self, message: str, sql: str = None, details: dict = None):
        super().__init__(message, details)
        self.sql = sql


class QueryError(DatabaseError):
    """Raised when executing a statement fails."""

    def __init__(self, message: str, sql: str = None, details: dict = None):
        """
        Initialize query error.

        Args:
            message: Error description.
            sql: The statement that failed.
            details: Additional context.
        """
        super().__init__(message, details)
        self.sql = sql


class ConstraintViolationError(QueryError):
    """Raised when a statement violates an integrity constraint."""
    pass


class RecordNotFoundError(DatabaseError):
    """Raised when an update does not affect exactly one record."""

    def __init__(self, record_id: int, changes: int):
        super().__init__(
            f"No such record: {record_id}",
            {"record_id": record_id, "changes": changes}
        )
        self.record_id = record_id
        self.changes = changes


class ValueDecodeError(DatabaseError):
    """Raised when a stored key-value entry cannot be decoded."""

    def __init__(self, key: str, details: dict = None):
        super().__init__(f"Cannot decode stored value for key: {key}", details)
        self.key = key


class DatabaseClosedError(DatabaseError):
    """Raised when a closed database is used or closed again."""

    def __init__(self, message: str = "Database is closed", details: dict = None):
        super().__init__(message, details)


class StatementReleasedError(DatabaseError):
    """Raised when a released statement is used."""
    pass


class ViewNotFoundError(DatabaseError):
    """Raised when a view name does not resolve to a stored view."""

    def __init__(self, view_name: str):
        super().__init__(f"View not found: {view_name}", {"view_name": view_name})
        self.view_name = view_name
