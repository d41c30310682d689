"""
relstore
Relational persistence for declared lists: filter-tree queries compiled to
SQLite and relationship bookkeeping across foreign keys and junction tables.
"""

from .adapter import DatabaseAdapter
from .list_adapter import ListAdapter
from .relationships import Cardinality, Quantifier, RelationshipDescriptor
from .exceptions import (
    RelStoreError,
    ConfigurationError,
    ConnectionError,
    MultipleErrors,
    QueryError,
    StorageError,
    ValidationError,
)
from .config import Config

__version__ = "0.1.0"

__all__ = [
    "DatabaseAdapter",
    "ListAdapter",
    "Cardinality",
    "Quantifier",
    "RelationshipDescriptor",
    "RelStoreError",
    "ConfigurationError",
    "ConnectionError",
    "MultipleErrors",
    "QueryError",
    "StorageError",
    "ValidationError",
    "Config",
]
