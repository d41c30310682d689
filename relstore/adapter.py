#!/usr/bin/env python3
"""
Database adapter for relstore.

Owns the shared SQLite connection and the registry of lists. Connecting runs
the relationship wiring: descriptors are consolidated, tables are built with
their foreign keys and junction tables are (re)created.
"""

import asyncio
import os
import sqlite3
from typing import Dict, List, Optional

import aiosqlite
from slugify import slugify

from .db.db_helpers import open_connection
from .db.schema import TableBuilder, create_table, drop_table, ensure_junction_table
from .exceptions import ConfigurationError, ConnectionError, MultipleErrors, StorageError
from .fields.base import FieldAdapter
from .list_adapter import ListAdapter
from .log_manager import get_logger
from .relationships import Cardinality, RelationshipDescriptor, consolidate_relationships

MEMORY_DB = ':memory:'


class DatabaseAdapter:
    """Registry of lists sharing one SQLite connection"""

    def __init__(self,
                 db_path: Optional[str] = None,
                 drop_database: bool = False,
                 environment: Optional[str] = None):
        """
        Args:
            db_path: SQLite database file or ':memory:'; derived from the
                application name on connect when omitted
            drop_database: Drop and recreate every table on connect
                (ignored in production)
            environment: Deployment environment, defaults to RELSTORE_ENV
        """
        self.db_path = db_path
        self.drop_database_on_connect = drop_database
        self.environment = environment or os.getenv('RELSTORE_ENV', 'development')
        self.list_adapters: Dict[str, ListAdapter] = {}
        self.rels: Optional[List[RelationshipDescriptor]] = None
        self.conn: Optional[aiosqlite.Connection] = None
        # Created on connect so it belongs to the running loop
        self.write_lock: Optional[asyncio.Lock] = None
        self._is_new = False
        self.logger = get_logger('DatabaseAdapter', component='adapter')

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    # ============================================================================
    # List registry
    # ============================================================================

    def new_list_adapter(self, key: str, fields: Dict[str, FieldAdapter],
                         table_name: Optional[str] = None) -> ListAdapter:
        """
        Register a list.

        Args:
            key: List key, used in relationship refs
            fields: Ordered mapping of path -> field adapter
            table_name: Physical table name (defaults to the key)

        Returns:
            The new ListAdapter
        """
        if self.rels is not None:
            raise ConfigurationError(f"Cannot register list '{key}' after connecting")
        if key in self.list_adapters:
            raise ConfigurationError(f"List '{key}' is already registered")
        list_adapter = ListAdapter(key, self, fields, table_name=table_name)
        self.list_adapters[key] = list_adapter
        return list_adapter

    def get_list_adapter_by_key(self, key: str) -> ListAdapter:
        try:
            return self.list_adapters[key]
        except KeyError:
            raise ConfigurationError(f"Unknown list '{key}'")

    def get_connection(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StorageError("Database adapter is not connected")
        return self.conn

    # ============================================================================
    # Connection
    # ============================================================================

    async def connect(self, name: Optional[str] = None) -> 'DatabaseAdapter':
        """
        Connect and wire up relationships.

        Args:
            name: Application name, used to derive a database file name when
                no db_path was configured
        """
        await self._connect(name)
        if self.rels is None:
            self.rels = consolidate_relationships(self.list_adapters)
        await self.post_connect()
        return self

    async def _connect(self, name: Optional[str] = None) -> None:
        db_path = self.db_path
        if not db_path:
            db_path = f"{slugify(name or '', separator='_') or 'relstore'}.db"
            self.logger.warning(f"No database path specified. Defaulting to '{db_path}'")
        self.db_path = db_path
        self._is_new = db_path == MEMORY_DB or not os.path.exists(db_path)

        try:
            self.conn = await open_connection(db_path)
            # Opening is lazy about some failures, so run a test query
            cursor = await self.conn.execute("SELECT 1+1 AS result")
            await cursor.fetchone()
        except sqlite3.Error as err:
            db_name = os.path.basename(db_path)
            directory = os.path.dirname(os.path.abspath(db_path))
            self.logger.error(f"Could not connect to database: '{db_name}'")
            self.logger.warning(
                f"If this is the first time you've run this application, make sure the "
                f"database directory exists: mkdir -p {directory}"
            )
            if self.conn is not None:
                await self.conn.close()
                self.conn = None
            raise ConnectionError(f"Could not connect to database: '{db_name}'", db_name=db_name) from err

        self.write_lock = asyncio.Lock()
        self.logger.info(f"Connected to {db_path}")

    async def post_connect(self) -> None:
        """
        Wire every list and relationship to the database.

        Each table and relationship is attempted independently; failures are
        collected and raised together once everything has been tried.

        Raises:
            The single error if exactly one step failed, MultipleErrors otherwise
        """
        for list_adapter in self.list_adapters.values():
            list_adapter._post_connect(self.rels)

        drop = self.drop_database_on_connect
        if drop and self.environment == 'production':
            self.logger.warning("drop_database is ignored in production")
            drop = False

        if drop:
            self.logger.info("Dropping database")
            await self.drop_database()
        elif not self._is_new:
            return

        errors: List[Exception] = []

        tables: Dict[str, TableBuilder] = {}
        for list_adapter in self.list_adapters.values():
            try:
                tables[list_adapter.key] = list_adapter.build_table_schema()
            except Exception as e:
                self.logger.error(f"Failed to build schema for {list_adapter.key}: {e}")
                errors.append(e)

        for rel in self.rels:
            if rel.cardinality is Cardinality.MANY_TO_MANY:
                continue
            try:
                self._add_foreign_key(tables, rel)
            except Exception as e:
                self.logger.error(f"Failed to wire foreign key for {rel}: {e}")
                errors.append(e)

        conn = self.get_connection()
        for key, table in tables.items():
            try:
                await create_table(conn, table)
            except Exception as e:
                self.logger.error(f"Failed to create table for {key}: {e}")
                errors.append(e)

        for rel in self.rels:
            if rel.cardinality is not Cardinality.MANY_TO_MANY:
                continue
            try:
                await self._create_adjacency_table(rel)
            except Exception as e:
                self.logger.error(f"Failed to create junction table for {rel}: {e}")
                errors.append(e)

        await conn.commit()

        if errors:
            if len(errors) == 1:
                raise errors[0]
            raise MultipleErrors("Multiple errors in DatabaseAdapter.post_connect()", errors)

        self.logger.info(
            f"Wired {len(self.list_adapters)} lists and {len(self.rels)} relationships"
        )

    def _add_foreign_key(self, tables: Dict[str, TableBuilder], rel: RelationshipDescriptor) -> None:
        """Put the FK constraint on the side the cardinality calls for."""
        fk_side = rel.fk_side
        table = tables.get(fk_side.list_key)
        if table is None:
            # Schema build failed; already reported
            return
        referenced = self.get_list_adapter_by_key(rel.referenced_list_key)
        table.foreign(rel.column_name, referenced.table_name)

    async def _create_adjacency_table(self, rel: RelationshipDescriptor) -> None:
        await ensure_junction_table(self.get_connection(), rel)

    # ============================================================================
    # Teardown
    # ============================================================================

    async def drop_database(self) -> None:
        """Drop every list and junction table. Use wisely."""
        conn = self.get_connection()
        await conn.commit()
        await conn.execute("PRAGMA foreign_keys=OFF")
        try:
            for rel in self.rels or []:
                if rel.cardinality is Cardinality.MANY_TO_MANY:
                    await drop_table(conn, rel.table_name)
            for list_adapter in self.list_adapters.values():
                await drop_table(conn, list_adapter.table_name)
            await conn.commit()
        finally:
            await conn.execute("PRAGMA foreign_keys=ON")

    async def disconnect(self) -> None:
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
            self.logger.info(f"Disconnected from {self.db_path}")
