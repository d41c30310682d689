#!/usr/bin/env python3
"""
Table schema helpers for relstore.

Field adapters describe their columns on a TableBuilder, relationship wiring
attaches foreign keys to it, and the builder renders the CREATE statements.
Junction tables for many-to-many relationships are managed here as well.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

import aiosqlite

from ..exceptions import ConfigurationError
from ..log_manager import get_logger
from ..query.sql import quote

logger = get_logger('schema', component='db')

# Sentinel for columns without a DEFAULT clause
NO_DEFAULT = object()


def render_default(value: Any) -> str:
    """Render a Python value as an SQLite DEFAULT literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


@dataclass
class ColumnDef:
    name: str
    sql_type: str
    primary_key: bool = False
    autoincrement: bool = False
    not_null: bool = False
    unique: bool = False
    default: Any = NO_DEFAULT

    def render(self) -> str:
        parts = [quote(self.name), self.sql_type]
        if self.primary_key:
            parts.append("PRIMARY KEY")
            if self.autoincrement:
                parts.append("AUTOINCREMENT")
        if self.not_null:
            parts.append("NOT NULL")
        if self.unique:
            parts.append("UNIQUE")
        if self.default is not NO_DEFAULT:
            parts.append(f"DEFAULT {render_default(self.default)}")
        return ' '.join(parts)


@dataclass
class ForeignKeyDef:
    column: str
    references_table: str
    references_column: str = 'id'
    on_delete: Optional[str] = None

    def render(self) -> str:
        sql = (f"FOREIGN KEY ({quote(self.column)}) "
               f"REFERENCES {quote(self.references_table)} ({quote(self.references_column)})")
        if self.on_delete:
            sql += f" ON DELETE {self.on_delete}"
        return sql


@dataclass
class TableBuilder:
    """Collects column, index and foreign key definitions for one table."""
    table_name: str
    columns: List[ColumnDef] = field(default_factory=list)
    indexes: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKeyDef] = field(default_factory=list)

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def add_column(self, name: str, sql_type: str, *,
                   primary_key: bool = False,
                   autoincrement: bool = False,
                   not_null: bool = False,
                   unique: bool = False,
                   indexed: bool = False,
                   default: Any = NO_DEFAULT) -> ColumnDef:
        if self.has_column(name):
            raise ConfigurationError(f"Duplicate column '{name}' on table '{self.table_name}'")
        column = ColumnDef(name, sql_type, primary_key=primary_key, autoincrement=autoincrement,
                           not_null=not_null, unique=unique, default=default)
        self.columns.append(column)
        if indexed and not unique and not primary_key:
            self.indexes.append(name)
        return column

    def foreign(self, column: str, references_table: str,
                references_column: str = 'id', on_delete: Optional[str] = None) -> ForeignKeyDef:
        if not self.has_column(column):
            raise ConfigurationError(
                f"Cannot add foreign key: table '{self.table_name}' has no column '{column}'"
            )
        fk = ForeignKeyDef(column, references_table, references_column, on_delete)
        self.foreign_keys.append(fk)
        return fk

    def create_statements(self) -> List[str]:
        """Render CREATE TABLE followed by one CREATE INDEX per indexed column."""
        if not self.columns:
            raise ConfigurationError(f"Table '{self.table_name}' has no columns")
        definitions = [c.render() for c in self.columns] + [fk.render() for fk in self.foreign_keys]
        body = ',\n    '.join(definitions)
        statements = [f"CREATE TABLE {quote(self.table_name)} (\n    {body}\n)"]
        for column in self.indexes:
            index_name = f"idx_{self.table_name}_{column}"
            statements.append(
                f"CREATE INDEX {quote(index_name)} ON {quote(self.table_name)} ({quote(column)})"
            )
        return statements


async def create_table(conn: aiosqlite.Connection, table: TableBuilder) -> None:
    """Execute the CREATE statements of a table builder."""
    for statement in table.create_statements():
        await conn.execute(statement)
    logger.debug(f"Created table {table.table_name}")


async def drop_table(conn: aiosqlite.Connection, table_name: str) -> None:
    await conn.execute(f"DROP TABLE IF EXISTS {quote(table_name)}")


async def ensure_junction_table(conn: aiosqlite.Connection, rel) -> TableBuilder:
    """
    (Re)create the junction table backing a many-to-many relationship.

    Drops any existing table of the same name, then creates two NOT NULL,
    indexed foreign key columns, one per side, each cascading on delete.
    Duplicate pairs are not prevented.

    Args:
        conn: Open connection
        rel: RelationshipDescriptor with MANY_TO_MANY cardinality

    Returns:
        The TableBuilder that was executed
    """
    try:
        await drop_table(conn, rel.table_name)
    except Exception as e:
        logger.error(f"Failed to drop junction table {rel.table_name}: {e}")
        raise

    table = TableBuilder(rel.table_name)
    table.add_column(rel.left_column, "INTEGER", not_null=True, indexed=True)
    table.foreign(rel.left_column, rel.left_table, on_delete="CASCADE")
    table.add_column(rel.right_column, "INTEGER", not_null=True, indexed=True)
    table.foreign(rel.right_column, rel.right_table, on_delete="CASCADE")

    await create_table(conn, table)
    logger.info(f"Created junction table {rel.table_name} for {rel}")
    return table
