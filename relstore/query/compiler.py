#!/usr/bin/env python3
"""
Query compiler.

Turns a filter tree plus pagination/sort arguments into one SQLite SELECT.

    where = {
        "title_contains": "sql",
        "author": {"name": "Ada"},                  # to-one: LEFT OUTER JOIN
        "tags_some": {"label_in": ["db", "py"]},    # to-many: IN (subquery)
        "OR": [{"views_gt": 10}, {"pinned": True}],
    }

Aliases: the base table is ``t0``; every to-one join appends ``__<path>`` to
its parent alias, so each joined table is named after its unique FK path
from the root. Quantifier subqueries and anchor joins take the next ``t<n>``.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import ConfigurationError, QueryError
from ..fields.conditions import Predicate, build_condition
from ..relationships import Cardinality, Quantifier
from .filter_keys import AND, LOGICAL_KEYS, OR, FilterKind, resolve_filter_key
from .sql import SelectQuery, column_ref, conjunction, disjunction, negation, quote

ORDER_DIRECTIONS = ('ASC', 'DESC')


class CompilerContext:
    """Alias bookkeeping for a single compile() call."""

    def __init__(self):
        # alias -> join it names (None for base aliases)
        self._aliases: Dict[str, Optional[str]] = {}
        self._next_base_alias_id = 0

    def next_base_alias(self) -> str:
        alias = f"t{self._next_base_alias_id}"
        self._next_base_alias_id += 1
        self._aliases[alias] = None
        return alias

    def claim(self, alias: str, join: Optional[str] = None) -> bool:
        """
        Register an alias for a join.

        Returns:
            False if the same join already holds the alias

        Raises:
            ConfigurationError: If a different join already holds it
        """
        if alias in self._aliases:
            if self._aliases[alias] != join:
                raise ConfigurationError(
                    f"Alias '{alias}' is used by two different joins; rename one of the fields"
                )
            return False
        self._aliases[alias] = join
        return True


class QueryCompiler:
    """
    Compiles queries against one list.

    Args:
        list_adapter: The list being queried
        where: Filter tree
        first: Maximum number of rows
        skip: Number of rows to skip
        order_by: "<path>_ASC" or "<path>_DESC"
        meta: Count rows instead of returning them
        from_: Anchor scope, {"from_list", "from_field", "from_id"}
    """

    def __init__(self, list_adapter,
                 where: Optional[Dict[str, Any]] = None,
                 first: Optional[int] = None,
                 skip: Optional[int] = None,
                 order_by: Optional[str] = None,
                 meta: bool = False,
                 from_: Optional[Dict[str, Any]] = None):
        self.list_adapter = list_adapter
        self.where = {} if where is None else where
        self.first = first
        self.skip = skip
        self.order_by = order_by
        self.meta = meta
        self.from_ = from_ or {}
        self.context = CompilerContext()

    def compile(self) -> Tuple[str, List[Any]]:
        """
        Build the SQL statement.

        Returns:
            Tuple of (sql, params)

        Raises:
            QueryError: For unknown filter keys, malformed values, bad
                ordering, bad pagination or an invalid scope
            ConfigurationError: If two different joins need the same alias
        """
        self._check_filter(self.where)
        # Count mode applies pagination to the count, so check it either way
        if self.first is not None:
            self._non_negative('first', self.first)
        if self.skip is not None:
            self._non_negative('skip', self.skip)

        list_adapter = self.list_adapter
        base_alias = self.context.next_base_alias()
        query = SelectQuery(list_adapter.table_name, base_alias)

        if self.meta:
            query.count = True
        else:
            query.select(f"{quote(base_alias)}.*")
            self._add_back_reference_joins(query, list_adapter, base_alias)

        self._add_joins(query, list_adapter, self.where, base_alias)
        if self.from_:
            self._add_scope(query, list_adapter, base_alias)
        query.where(self._where_clause(list_adapter, self.where, base_alias))

        if not self.meta:
            self._add_modifiers(query, list_adapter, base_alias)

        return query.to_sql()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_filter(where: Any) -> None:
        if not isinstance(where, dict):
            raise QueryError(f"A filter must be a dictionary, got {type(where).__name__}")

    def _sub_filters(self, key: str, value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, (list, tuple)):
            raise QueryError(f"{key} requires a list of filters")
        for item in value:
            self._check_filter(item)
        return list(value)

    # ------------------------------------------------------------------
    # Join pass
    # ------------------------------------------------------------------

    def _add_back_reference_joins(self, query: SelectQuery, list_adapter, alias: str) -> None:
        """
        Project the id of the item on the far side of every 1:1 whose FK
        lives on the other table, so the value is available without a filter.
        """
        for adapter in list_adapter.field_adapters:
            if not adapter.is_relationship or not adapter.is_one_to_one_back_reference:
                continue
            rel = adapter.rel
            other_alias = f"{alias}__{adapter.path}_11"
            on = f"{column_ref(other_alias, rel.column_name)} = {column_ref(alias, 'id')}"
            if self.context.claim(other_alias, f"{rel.table_name} ON {on}"):
                query.left_outer_join(rel.table_name, other_alias, on)
                query.select(f"{column_ref(other_alias, 'id')} AS {quote(adapter.path)}")

    def _add_joins(self, query: SelectQuery, list_adapter, where: Dict[str, Any], alias: str) -> None:
        """
        Left-join every to-one relationship mentioned in the filter tree.

        To-many keys are left to the predicate pass, which builds subqueries.
        """
        for key, value in where.items():
            if key in LOGICAL_KEYS:
                for sub_where in self._sub_filters(key, value):
                    self._add_joins(query, list_adapter, sub_where, alias)
                continue

            target = resolve_filter_key(list_adapter, key)
            if target.kind is not FilterKind.TO_ONE:
                continue

            adapter = target.adapter
            self._check_filter(value)
            other_list = list_adapter.get_list_adapter_by_key(adapter.ref_list_key)
            other_alias = f"{alias}__{adapter.path}"
            if adapter.has_real_keys():
                # ... LEFT OUTER JOIN other AS t0__path ON t0__path.id = t0.path
                on = f"{column_ref(other_alias, 'id')} = {column_ref(alias, adapter.rel.column_name)}"
            else:
                # 1:1 with the FK on the other table
                on = f"{column_ref(other_alias, adapter.rel.column_name)} = {column_ref(alias, 'id')}"
            if self.context.claim(other_alias, f"{other_list.table_name} ON {on}"):
                query.left_outer_join(other_list.table_name, other_alias, on)
            self._add_joins(query, other_list, value, other_alias)

    # ------------------------------------------------------------------
    # Predicate pass
    # ------------------------------------------------------------------

    def _where_clause(self, list_adapter, where: Dict[str, Any], alias: str) -> Predicate:
        predicates = []
        for key, value in where.items():
            if key == AND:
                predicates.append(conjunction([
                    self._where_clause(list_adapter, sub_where, alias)
                    for sub_where in self._sub_filters(key, value)
                ]))
            elif key == OR:
                predicates.append(disjunction([
                    self._where_clause(list_adapter, sub_where, alias)
                    for sub_where in self._sub_filters(key, value)
                ]))
            else:
                target = resolve_filter_key(list_adapter, key)
                adapter = target.adapter
                if target.kind is FilterKind.CONDITION:
                    column = column_ref(alias, adapter.db_path)
                    predicates.append(build_condition(target.operator, column, value, adapter.to_db))
                elif target.kind is FilterKind.TO_ONE:
                    other_list = list_adapter.get_list_adapter_by_key(adapter.ref_list_key)
                    predicates.append(
                        self._where_clause(other_list, value, f"{alias}__{adapter.path}")
                    )
                else:
                    self._check_filter(value)
                    predicates.append(
                        self._quantifier_clause(list_adapter, adapter, target.quantifier, value, alias)
                    )
        return conjunction(predicates)

    def _quantifier_clause(self, list_adapter, adapter, quantifier: Quantifier,
                           where: Dict[str, Any], alias: str) -> Predicate:
        """
        Correlate a to-many filter through a subquery of matching owner ids.

        some:  the id is among the owners of matching related items
        none:  the id is not among them
        every: the id is not among the owners of non-matching related items,
               so items without related rows pass
        """
        rel = adapter.rel
        other_list = list_adapter.get_list_adapter_by_key(adapter.ref_list_key)
        sub_alias = self.context.next_base_alias()

        if rel.cardinality is Cardinality.MANY_TO_MANY:
            near, far = rel.junction_columns(adapter)
            other_alias = f"{sub_alias}__{adapter.path}"
            on = f"{column_ref(other_alias, 'id')} = {column_ref(sub_alias, far)}"
            self.context.claim(other_alias, f"{other_list.table_name} ON {on}")
            sub_query = SelectQuery(rel.table_name, sub_alias)
            sub_query.select(column_ref(sub_alias, near))
            sub_query.inner_join(other_list.table_name, other_alias, on)
        else:
            # Many side of 1:N / N:1: the related rows carry the FK
            other_alias = sub_alias
            owner_column = column_ref(other_alias, rel.column_name)
            sub_query = SelectQuery(other_list.table_name, other_alias)
            sub_query.select(owner_column)
            # NOT IN against a NULL would reject every row
            sub_query.where((f"{owner_column} IS NOT NULL", []))

        self._add_joins(sub_query, other_list, where, other_alias)
        nested = self._where_clause(other_list, where, other_alias)
        if quantifier is Quantifier.EVERY:
            nested = negation(nested)
        sub_query.where(nested)

        sub_sql, sub_params = sub_query.to_sql()
        operator = "IN" if quantifier is Quantifier.SOME else "NOT IN"
        return f"{column_ref(alias, 'id')} {operator} ({sub_sql})", sub_params

    # ------------------------------------------------------------------
    # Scope and modifiers
    # ------------------------------------------------------------------

    def _add_scope(self, query: SelectQuery, list_adapter, alias: str) -> None:
        """Restrict results to the items related to one anchor item."""
        try:
            from_list = self.from_['from_list']
            from_field = self.from_['from_field']
            from_id = self.from_['from_id']
        except KeyError as e:
            raise QueryError(f"Scoped queries require {e.args[0]!r}")

        if isinstance(from_list, str):
            from_list = list_adapter.get_list_adapter_by_key(from_list)
        adapter = from_list.field_adapters_by_path.get(from_field)
        if adapter is None or not adapter.is_relationship:
            raise QueryError(f"'{from_list.key}.{from_field}' is not a relationship field")
        if adapter.ref_list_key != list_adapter.key:
            raise QueryError(
                f"'{from_list.key}.{from_field}' does not refer to list '{list_adapter.key}'"
            )

        from_id = adapter.to_db(from_id)
        rel = adapter.rel
        other_alias = self.context.next_base_alias()

        if rel.cardinality is Cardinality.MANY_TO_MANY:
            anchor_column, item_column = rel.junction_columns(adapter)
            query.left_outer_join(
                rel.table_name, other_alias,
                f"{column_ref(other_alias, item_column)} = {column_ref(alias, 'id')}"
            )
            query.where((f"{column_ref(other_alias, anchor_column)} = ?", [from_id]))
        elif adapter.has_real_keys():
            # The anchor holds the FK
            query.left_outer_join(
                from_list.table_name, other_alias,
                f"{column_ref(other_alias, rel.column_name)} = {column_ref(alias, 'id')}"
            )
            query.where((f"{column_ref(other_alias, 'id')} = ?", [from_id]))
        else:
            # This list holds the FK
            query.left_outer_join(
                from_list.table_name, other_alias,
                f"{column_ref(alias, rel.column_name)} = {column_ref(other_alias, 'id')}"
            )
            query.where((f"{column_ref(alias, rel.column_name)} = ?", [from_id]))

    def _add_modifiers(self, query: SelectQuery, list_adapter, alias: str) -> None:
        query.limit = self.first
        query.offset = self.skip
        if self.order_by is not None:
            path, _, direction = str(self.order_by).rpartition('_')
            direction = direction.upper()
            if not path or direction not in ORDER_DIRECTIONS:
                raise QueryError(
                    f"Invalid order_by '{self.order_by}': expected '<field>_ASC' or '<field>_DESC'"
                )
            adapter = list_adapter.field_adapters_by_path.get(path)
            if adapter is None or not adapter.has_real_keys():
                raise QueryError(f"Cannot order '{list_adapter.key}' by '{path}'")
            sort_key = adapter.sort_key or adapter.db_path
            query.order_by.append(f"{column_ref(alias, sort_key)} {direction}")

    @staticmethod
    def _non_negative(name: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise QueryError(f"'{name}' must be a non-negative integer, got {value!r}")
        return value


def compile_query(list_adapter, where: Optional[Dict[str, Any]] = None, **kwargs) -> Tuple[str, List[Any]]:
    """Compile a query against one list; see QueryCompiler for the arguments."""
    return QueryCompiler(list_adapter, where=where, **kwargs).compile()
