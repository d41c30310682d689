#!/usr/bin/env python3
"""
Database connection helpers for relstore.
Provides the shared connection setup and a decorator for transaction handling.
"""

import functools
from contextlib import asynccontextmanager

import aiosqlite

from ..fields.conditions import CASEFOLD, casefold


async def open_connection(db_path: str) -> aiosqlite.Connection:
    """
    Open the shared connection and apply relstore's pragmas.

    Args:
        db_path: Path to SQLite database (or ':memory:')
    """
    conn = await aiosqlite.connect(db_path)
    try:
        conn.row_factory = aiosqlite.Row
        # Enable WAL mode for better concurrency
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA busy_timeout=5000")
        await conn.execute("PRAGMA foreign_keys=ON")
        # lower() and LIKE only fold ASCII
        await conn.create_function(CASEFOLD, 1, casefold, deterministic=True)
    except Exception:
        await conn.close()
        raise
    return conn


@asynccontextmanager
async def transaction(db_adapter, writer: bool = False):
    """
    Use the adapter's shared connection.

    Args:
        db_adapter: Connected DatabaseAdapter
        writer: If True, serialize with other writers, commit on success
            and roll back on error
    """
    conn = db_adapter.get_connection()
    if not writer:
        yield conn
        return

    async with db_adapter.write_lock:
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


def with_connection(writer: bool = False):
    """
    Decorator that provides the database connection to the decorated method.

    The decorated method's owner must expose ``parent_adapter``.

    Args:
        writer: If True, runs the method in its own transaction
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, *args, **kwargs):
            async with transaction(self.parent_adapter, writer=writer) as conn:
                return await fn(self, conn, *args, **kwargs)
        return wrapper
    return decorator
