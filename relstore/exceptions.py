"""
Exception classes for relstore.
"""


class RelStoreError(Exception):
    """Base exception for all relstore errors."""
    pass


class ConfigurationError(RelStoreError):
    """Raised when lists, fields or relationships are misconfigured."""
    pass


class StorageError(RelStoreError):
    """Raised when storage operations fail."""
    pass


class QueryError(RelStoreError):
    """Raised when a filter, ordering or scope cannot be compiled."""
    pass


class ValidationError(RelStoreError):
    """Raised when mutation input is invalid."""
    pass


class ConnectionError(RelStoreError):
    """Raised when the database connection fails."""

    def __init__(self, message: str, db_name: str = None):
        super().__init__(message)
        self.db_name = db_name


class MultipleErrors(RelStoreError):
    """Raised when several independent wiring steps fail."""

    def __init__(self, message: str, errors: list):
        super().__init__(f"{message} ({len(errors)} errors)")
        self.errors = errors
