#!/usr/bin/env python3
"""
List adapter for relstore.

One ListAdapter per list (entity type). It owns the list's field adapters,
writes items and keeps foreign key columns and junction tables consistent
with the relationship values submitted on create/update/delete.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

import aiosqlite

from .db.db_helpers import with_connection
from .db.schema import TableBuilder
from .exceptions import ConfigurationError, ValidationError
from .fields.base import FieldAdapter, to_id
from .fields.scalars import AutoIncrement
from .log_manager import get_logger
from .query.compiler import compile_query
from .query.filter_keys import build_filter_keys
from .query.sql import quote
from .relationships import Cardinality


class ListAdapter:
    """Persistence for one list, including its relationship bookkeeping"""

    def __init__(self, key: str, parent_adapter, fields: Dict[str, FieldAdapter],
                 table_name: Optional[str] = None):
        """
        Args:
            key: List key (e.g. 'User')
            parent_adapter: The owning DatabaseAdapter
            fields: Ordered mapping of path -> field adapter
            table_name: Physical table name (defaults to the key)
        """
        self.key = key
        self.parent_adapter = parent_adapter
        self.registry = parent_adapter.list_adapters
        self.table_name = table_name or key
        self.field_adapters: List[FieldAdapter] = []
        self.field_adapters_by_path: Dict[str, FieldAdapter] = {}
        self.real_keys: List[str] = []
        self.rels = None
        self.filter_keys = {}
        self.logger = get_logger('ListAdapter', component='adapter')

        if 'id' not in fields:
            self.add_field_adapter('id', AutoIncrement())
        for path, field_adapter in fields.items():
            self.add_field_adapter(path, field_adapter)

    def __repr__(self):
        return f"<ListAdapter {self.key}>"

    def add_field_adapter(self, path: str, field_adapter: FieldAdapter) -> None:
        if path in self.field_adapters_by_path:
            raise ConfigurationError(f"{self.key}: duplicate field '{path}'")
        field_adapter.bind(self, path)
        self.field_adapters.append(field_adapter)
        self.field_adapters_by_path[path] = field_adapter

    def get_list_adapter_by_key(self, key: str) -> 'ListAdapter':
        return self.parent_adapter.get_list_adapter_by_key(key)

    def get_primary_key_adapter(self) -> FieldAdapter:
        return self.field_adapters_by_path['id']

    def _post_connect(self, rels) -> None:
        """Attach relationship metadata and build the real-key and filter-key registries."""
        self.rels = rels
        self.real_keys = []
        for field_adapter in self.field_adapters:
            if field_adapter.has_real_keys():
                self.real_keys.extend(field_adapter.real_keys)
        self.filter_keys = build_filter_keys(self)

    def build_table_schema(self) -> TableBuilder:
        """Let every field adapter add what it needs to the table schema."""
        table = TableBuilder(self.table_name)
        for field_adapter in self.field_adapters:
            field_adapter.add_to_table_schema(table, self.rels)
        return table

    # ============================================================================
    # Helpers
    # ============================================================================

    def _row_to_item(self, row: aiosqlite.Row) -> Dict[str, Any]:
        item = dict(row)
        for path in self.real_keys:
            if path in item:
                item[path] = self.field_adapters_by_path[path].from_db(item[path])
        return item

    def _check_data(self, data: Dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ValidationError(f"{self.key}: item data must be a dictionary")
        unknown = [path for path in data if path not in self.field_adapters_by_path]
        if unknown:
            raise ValidationError(f"{self.key}: unknown fields {unknown}")

    def _real_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            path: self.field_adapters_by_path[path].to_db(value)
            for path, value in data.items()
            if path in self.real_keys
        }

    def _non_real_fields(self, data: Dict[str, Any]) -> Iterator[Tuple[str, Any, FieldAdapter]]:
        for path, value in data.items():
            if path not in self.real_keys:
                yield path, value, self.field_adapters_by_path[path]

    def _apply_defaults(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(data)
        for field_adapter in self.field_adapters:
            if field_adapter.path in data or field_adapter.default_value is None:
                continue
            default = field_adapter.default_value
            data[field_adapter.path] = default() if callable(default) else default
        return data

    async def _fetch_row(self, conn, item_id: Any) -> Optional[Dict[str, Any]]:
        cursor = await conn.execute(
            f"SELECT * FROM {quote(self.table_name)} WHERE id = ?", (item_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_item(row) if row else None

    # ============================================================================
    # Mutations
    # ============================================================================

    async def _unset_one_to_one_values(self, conn, real_data: Dict[str, Any]) -> None:
        """
        A 1:1 FK in the real data may only point at its target from one item,
        so clear it from whichever item holds it now.
        """
        for path, value in real_data.items():
            field_adapter = self.field_adapters_by_path[path]
            if not field_adapter.is_relationship or value is None:
                continue
            rel = field_adapter.rel
            if rel.cardinality is not Cardinality.ONE_TO_ONE:
                continue
            column = quote(rel.column_name)
            await conn.execute(
                f"UPDATE {quote(rel.table_name)} SET {column} = NULL WHERE {column} = ?",
                (value,)
            )

    async def _create_or_update_field(self, conn, value: Any, field_adapter, item_id: Any) -> Any:
        """
        Write one non-real relationship value for item_id.

        N:N puts it in the junction table; 1:N / N:1 and 1:1 put it in the FK
        column of the other table.
        """
        rel = field_adapter.rel
        table = quote(rel.table_name)

        if rel.cardinality is Cardinality.ONE_TO_ONE:
            if value is None:
                return None
            target_id = to_id(value)
            await conn.execute(
                f"UPDATE {table} SET {quote(rel.column_name)} = ? WHERE id = ?",
                (item_id, target_id)
            )
            return target_id

        values = field_adapter.to_many_values(value)
        if not values:
            return []

        if rel.cardinality is Cardinality.MANY_TO_MANY:
            near, far = rel.junction_columns(field_adapter)
            await conn.executemany(
                f"INSERT INTO {table} ({quote(near)}, {quote(far)}) VALUES (?, ?)",
                [(item_id, target_id) for target_id in values]
            )
        else:
            placeholders = ','.join('?' for _ in values)
            await conn.execute(
                f"UPDATE {table} SET {quote(rel.column_name)} = ? WHERE id IN ({placeholders})",
                (item_id, *values)
            )
        return values

    async def _current_ref_ids(self, conn, field_adapter, item_id: Any) -> List[Any]:
        rel = field_adapter.rel
        if rel.cardinality is Cardinality.MANY_TO_MANY:
            near, far = rel.junction_columns(field_adapter)
            sql = f"SELECT {quote(far)} AS ref_id FROM {quote(rel.table_name)} WHERE {quote(near)} = ?"
        else:
            sql = (f"SELECT id AS ref_id FROM {quote(rel.table_name)} "
                   f"WHERE {quote(rel.column_name)} = ?")
        cursor = await conn.execute(sql, (item_id,))
        return [row['ref_id'] for row in await cursor.fetchall()]

    async def _remove_refs(self, conn, field_adapter, item_id: Any, ref_ids: List[Any]) -> None:
        rel = field_adapter.rel
        placeholders = ','.join('?' for _ in ref_ids)
        if rel.cardinality is Cardinality.MANY_TO_MANY:
            near, far = rel.junction_columns(field_adapter)
            await conn.execute(
                f"DELETE FROM {quote(rel.table_name)} "
                f"WHERE {quote(near)} = ? AND {quote(far)} IN ({placeholders})",
                (item_id, *ref_ids)
            )
        else:
            await conn.execute(
                f"UPDATE {quote(rel.table_name)} SET {quote(rel.column_name)} = NULL "
                f"WHERE id IN ({placeholders})",
                ref_ids
            )

    @with_connection(writer=True)
    async def create(self, conn, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create an item.

        Args:
            data: Field values; relationship fields take an id (to-one) or a
                list of ids (to-many)

        Returns:
            The stored row merged with the relationship values that were
            written to other tables
        """
        return await self._create(conn, data)

    async def _create(self, conn, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check_data(data)
        data = self._apply_defaults(data)
        real_data = self._real_data(data)

        await self._unset_one_to_one_values(conn, real_data)

        if real_data:
            columns = ', '.join(quote(self.field_adapters_by_path[p].db_path) for p in real_data)
            placeholders = ', '.join('?' for _ in real_data)
            cursor = await conn.execute(
                f"INSERT INTO {quote(self.table_name)} ({columns}) VALUES ({placeholders})",
                list(real_data.values())
            )
        else:
            cursor = await conn.execute(f"INSERT INTO {quote(self.table_name)} DEFAULT VALUES")
        item = await self._fetch_row(conn, cursor.lastrowid)

        # For every non-real field, update the corresponding FK/junction table
        many_item = {}
        for path, value, field_adapter in self._non_real_fields(data):
            many_item[path] = await self._create_or_update_field(conn, value, field_adapter, item['id'])

        self.logger.debug(f"Created {self.key} {item['id']}")
        return {**item, **many_item}

    @with_connection(writer=True)
    async def update(self, conn, item_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update an item.

        Relationship fields are reconciled against what is stored: removed
        references are cleared first, then new ones are added.

        Returns:
            The item as re-read through the query path, or None if it does
            not exist
        """
        return await self._update(conn, item_id, data)

    async def _update(self, conn, item_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check_data(data)
        item_id = to_id(item_id)
        if await self._fetch_row(conn, item_id) is None:
            return None

        real_data = self._real_data(data)
        await self._unset_one_to_one_values(conn, real_data)

        if real_data:
            assignments = ', '.join(
                f"{quote(self.field_adapters_by_path[p].db_path)} = ?" for p in real_data
            )
            await conn.execute(
                f"UPDATE {quote(self.table_name)} SET {assignments} WHERE id = ?",
                (*real_data.values(), item_id)
            )

        for path, new_value, field_adapter in self._non_real_fields(data):
            rel = field_adapter.rel
            if rel.cardinality is Cardinality.ONE_TO_ONE:
                # Release whatever points at this item, then point the new target
                column = quote(rel.column_name)
                await conn.execute(
                    f"UPDATE {quote(rel.table_name)} SET {column} = NULL WHERE {column} = ?",
                    (item_id,)
                )
                value = new_value
            else:
                new_values = field_adapter.to_many_values(new_value)
                current_ids = await self._current_ref_ids(conn, field_adapter, item_id)

                new_keys = {str(v) for v in new_values}
                current_keys = {str(v) for v in current_ids}

                needs_delete = [x for x in current_ids if str(x) not in new_keys]
                if needs_delete:
                    await self._remove_refs(conn, field_adapter, item_id, needs_delete)
                value = [v for v in new_values if str(v) not in current_keys]

            await self._create_or_update_field(conn, value, field_adapter, item_id)

        self.logger.debug(f"Updated {self.key} {item_id}")
        items = await self._items_query(conn, where={'id': item_id}, first=1)
        return items[0] if items else None

    @with_connection(writer=True)
    async def delete(self, conn, item_id: Any) -> int:
        """
        Delete an item and every reference to it.

        Returns:
            Number of rows deleted (0 or 1)
        """
        return await self._delete(conn, item_id)

    async def _delete(self, conn, item_id: Any) -> int:
        item_id = to_id(item_id)

        # Traverse all lists and remove references to this item. Our own
        # fields are not enough: a one-sided relationship declared on another
        # list refers to us without us knowing about it.
        swept = set()
        for list_adapter in self.registry.values():
            for field_adapter in list_adapter.field_adapters:
                if not field_adapter.is_relationship or field_adapter.ref_list_key != self.key:
                    continue
                rel = field_adapter.rel
                if id(rel) in swept:
                    continue
                swept.add(id(rel))

                if rel.cardinality is Cardinality.MANY_TO_MANY:
                    columns = rel.columns_referencing(self.key)
                    condition = ' OR '.join(f"{quote(c)} = ?" for c in columns)
                    await conn.execute(
                        f"DELETE FROM {quote(rel.table_name)} WHERE {condition}",
                        [item_id] * len(columns)
                    )
                elif rel.referenced_list_key == self.key:
                    column = quote(rel.column_name)
                    await conn.execute(
                        f"UPDATE {quote(rel.table_name)} SET {column} = NULL WHERE {column} = ?",
                        (item_id,)
                    )

        cursor = await conn.execute(
            f"DELETE FROM {quote(self.table_name)} WHERE id = ?", (item_id,)
        )
        self.logger.debug(f"Deleted {self.key} {item_id} ({cursor.rowcount} rows)")
        return cursor.rowcount

    # ============================================================================
    # Queries
    # ============================================================================

    @with_connection(writer=False)
    async def query(self, conn,
                    where: Optional[Dict[str, Any]] = None,
                    first: Optional[int] = None,
                    skip: Optional[int] = None,
                    order_by: Optional[str] = None,
                    meta: bool = False,
                    from_: Optional[Dict[str, Any]] = None):
        """
        Query items with a filter tree.

        Args:
            where: Filter tree
            first: Maximum number of items
            skip: Number of items to skip
            order_by: "<field>_ASC" or "<field>_DESC"
            meta: Return {"count": n} instead of items
            from_: Restrict to items related to an anchor item:
                {"from_list": "User", "from_field": "posts", "from_id": 1}

        Returns:
            List of item dicts, or {"count": n} when meta is True
        """
        return await self._items_query(conn, where=where, first=first, skip=skip,
                                       order_by=order_by, meta=meta, from_=from_)

    async def _items_query(self, conn,
                           where: Optional[Dict[str, Any]] = None,
                           first: Optional[int] = None,
                           skip: Optional[int] = None,
                           order_by: Optional[str] = None,
                           meta: bool = False,
                           from_: Optional[Dict[str, Any]] = None):
        sql, params = compile_query(self, where=where, first=first, skip=skip,
                                    order_by=order_by, meta=meta, from_=from_)
        self.logger.debug(f"{self.key} query: {sql} {params}")

        cursor = await conn.execute(sql, params)
        rows = await cursor.fetchall()

        if meta:
            count = rows[0]['count']
            # Pagination is not part of the count query, so adjust here
            if skip is not None:
                count -= skip
            if first is not None:
                count = min(count, first)
            return {'count': max(0, count)}

        return [self._row_to_item(row) for row in rows]

    async def find_by_id(self, item_id: Any) -> Optional[Dict[str, Any]]:
        items = await self.query(where={'id': item_id}, first=1)
        return items[0] if items else None

    async def find_all(self) -> List[Dict[str, Any]]:
        return await self.query()

    async def find_one(self, where: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        items = await self.query(where=where, first=1)
        return items[0] if items else None
