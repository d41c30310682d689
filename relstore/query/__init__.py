"""
Filter-tree to SQL compilation.

Example usage:
    from relstore.query import QueryCompiler

    sql, params = QueryCompiler(
        posts,
        where={"author": {"name": "Ada"}},
        first=10,
        order_by="title_ASC",
    ).compile()
"""

from .compiler import CompilerContext, QueryCompiler, compile_query
from .filter_keys import FilterKind, FilterTarget, build_filter_keys, resolve_filter_key
from .sql import SelectQuery, column_ref, conjunction, disjunction, negation, quote

__all__ = [
    'CompilerContext',
    'QueryCompiler',
    'compile_query',
    'FilterKind',
    'FilterTarget',
    'build_filter_keys',
    'resolve_filter_key',
    'SelectQuery',
    'column_ref',
    'conjunction',
    'disjunction',
    'negation',
    'quote',
]
