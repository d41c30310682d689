"""
Database layer for relstore
Handles the shared SQLite connection and table DDL
"""

from .db_helpers import open_connection, transaction, with_connection
from .schema import TableBuilder, create_table, drop_table, ensure_junction_table

__all__ = [
    'open_connection',
    'transaction',
    'with_connection',
    'TableBuilder',
    'create_table',
    'drop_table',
    'ensure_junction_table',
]
