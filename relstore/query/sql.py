"""
Minimal SELECT builder used by the query compiler.

Predicates are (sql, params) tuples; join conditions never carry parameters,
so parameters are emitted in WHERE order followed by LIMIT/OFFSET.
"""

from typing import Any, List, Optional, Tuple

from ..fields.conditions import FALSE, TRUE, Predicate


def quote(identifier: str) -> str:
    """Quote an SQLite identifier."""
    return '"' + str(identifier).replace('"', '""') + '"'


def column_ref(alias: str, column: str) -> str:
    return f"{quote(alias)}.{quote(column)}"


def conjunction(predicates: List[Predicate]) -> Predicate:
    """AND together predicates; an empty conjunction is true."""
    if not predicates:
        return TRUE
    if len(predicates) == 1:
        return predicates[0]
    params: List[Any] = []
    for _, p in predicates:
        params.extend(p)
    return f"({' AND '.join(sql for sql, _ in predicates)})", params


def disjunction(predicates: List[Predicate]) -> Predicate:
    """OR together predicates; an empty disjunction is false."""
    if not predicates:
        return FALSE
    if len(predicates) == 1:
        return predicates[0]
    params: List[Any] = []
    for _, p in predicates:
        params.extend(p)
    return f"({' OR '.join(sql for sql, _ in predicates)})", params


def negation(predicate: Predicate) -> Predicate:
    """
    Negate a predicate, treating an unknown (NULL) result as not matching.

    ``NOT (x)`` would leave NULL as NULL; coalescing first makes rows that
    compare against NULL count as failing the inner predicate.
    """
    sql, params = predicate
    return f"NOT COALESCE(({sql}), 0)", list(params)


class SelectQuery:
    """Accumulates the parts of a single SELECT statement."""

    def __init__(self, table: str, alias: str):
        self.table = table
        self.alias = alias
        self.columns: List[str] = []
        self.joins: List[str] = []
        self.wheres: List[Predicate] = []
        self.order_by: List[str] = []
        self.limit: Optional[int] = None
        self.offset: Optional[int] = None
        self.count = False

    def select(self, expression: str) -> 'SelectQuery':
        self.columns.append(expression)
        return self

    def left_outer_join(self, table: str, alias: str, on: str) -> 'SelectQuery':
        self.joins.append(f"LEFT OUTER JOIN {quote(table)} AS {quote(alias)} ON {on}")
        return self

    def inner_join(self, table: str, alias: str, on: str) -> 'SelectQuery':
        self.joins.append(f"INNER JOIN {quote(table)} AS {quote(alias)} ON {on}")
        return self

    def where(self, predicate: Predicate) -> 'SelectQuery':
        self.wheres.append(predicate)
        return self

    def to_sql(self) -> Tuple[str, List[Any]]:
        """
        Render the statement.

        Returns:
            Tuple of (sql, params)
        """
        if self.count:
            projection = "COUNT(*) AS count"
        else:
            projection = ', '.join(self.columns) if self.columns else f"{quote(self.alias)}.*"

        where_sql, params = conjunction(self.wheres)
        parts = [
            f"SELECT {projection}",
            f"FROM {quote(self.table)} AS {quote(self.alias)}",
            *self.joins,
            f"WHERE {where_sql}",
        ]
        params = list(params)

        if self.order_by:
            parts.append(f"ORDER BY {', '.join(self.order_by)}")
        if self.limit is not None or self.offset is not None:
            # SQLite needs a LIMIT before OFFSET; -1 means no limit
            parts.append("LIMIT ?")
            params.append(self.limit if self.limit is not None else -1)
            if self.offset is not None:
                parts.append("OFFSET ?")
                params.append(self.offset)

        return '\n'.join(parts), params
