#!/usr/bin/env python3
"""
Condition registry for field filters.

Every filterable field declares the operator categories it supports. The
categories expand into filter-key suffixes (``name``, ``name_not``,
``name_in``, ``name_contains_i`` ...) once, when the owning list is wired up.
At query time a resolved key is turned into a parameterised SQLite predicate
over a column reference.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from ..exceptions import QueryError

# (sql, params)
Predicate = Tuple[str, List[Any]]

TRUE: Predicate = ("1=1", [])
FALSE: Predicate = ("0=1", [])

# SQL function registered on every connection; folds the full Unicode range
CASEFOLD = "casefold"


def casefold(value: Any) -> Any:
    """Case-fold strings; other values pass through unchanged."""
    if isinstance(value, str):
        return value.casefold()
    return value


def identity(value: Any) -> Any:
    return value


class ConditionOperator(Enum):
    """Filter-key suffixes understood by the registry."""
    # Equality
    EQ = ""
    NOT = "_not"
    EQ_I = "_i"
    NOT_I = "_not_i"

    # Set membership
    IN = "_in"
    NOT_IN = "_not_in"

    # Ordering
    LT = "_lt"
    LTE = "_lte"
    GT = "_gt"
    GTE = "_gte"

    # String patterns
    CONTAINS = "_contains"
    NOT_CONTAINS = "_not_contains"
    STARTS_WITH = "_starts_with"
    NOT_STARTS_WITH = "_not_starts_with"
    ENDS_WITH = "_ends_with"
    NOT_ENDS_WITH = "_not_ends_with"
    CONTAINS_I = "_contains_i"
    NOT_CONTAINS_I = "_not_contains_i"
    STARTS_WITH_I = "_starts_with_i"
    NOT_STARTS_WITH_I = "_not_starts_with_i"
    ENDS_WITH_I = "_ends_with_i"
    NOT_ENDS_WITH_I = "_not_ends_with_i"

    # Nullity (relationship FK columns)
    IS_NULL = "_is_null"

    @property
    def suffix(self) -> str:
        return self.value


class ConditionCategory(Enum):
    """Groups of operators a field type can opt into."""
    EQUALITY = "equality"
    EQUALITY_INSENSITIVE = "equality_insensitive"
    SET = "set"
    ORDERING = "ordering"
    STRING = "string"
    STRING_INSENSITIVE = "string_insensitive"
    NULLITY = "nullity"


CATEGORY_OPERATORS: Dict[ConditionCategory, Tuple[ConditionOperator, ...]] = {
    ConditionCategory.EQUALITY: (ConditionOperator.EQ, ConditionOperator.NOT),
    ConditionCategory.EQUALITY_INSENSITIVE: (ConditionOperator.EQ_I, ConditionOperator.NOT_I),
    ConditionCategory.SET: (ConditionOperator.IN, ConditionOperator.NOT_IN),
    ConditionCategory.ORDERING: (
        ConditionOperator.LT, ConditionOperator.LTE,
        ConditionOperator.GT, ConditionOperator.GTE,
    ),
    ConditionCategory.STRING: (
        ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS,
        ConditionOperator.STARTS_WITH, ConditionOperator.NOT_STARTS_WITH,
        ConditionOperator.ENDS_WITH, ConditionOperator.NOT_ENDS_WITH,
    ),
    ConditionCategory.STRING_INSENSITIVE: (
        ConditionOperator.CONTAINS_I, ConditionOperator.NOT_CONTAINS_I,
        ConditionOperator.STARTS_WITH_I, ConditionOperator.NOT_STARTS_WITH_I,
        ConditionOperator.ENDS_WITH_I, ConditionOperator.NOT_ENDS_WITH_I,
    ),
    ConditionCategory.NULLITY: (ConditionOperator.IS_NULL,),
}


def conditions_for(path: str, categories) -> Dict[str, ConditionOperator]:
    """
    Expand a field's categories into its filter keys.

    Args:
        path: Field path
        categories: Iterable of ConditionCategory

    Returns:
        Dict mapping filter key to operator
    """
    conditions = {}
    for category in categories:
        for op in CATEGORY_OPERATORS[category]:
            conditions[f"{path}{op.suffix}"] = op
    return conditions


# ============================================================================
# Pattern escaping
# ============================================================================

def escape_glob(value: str) -> str:
    """Escape GLOB metacharacters so the value matches literally."""
    return ''.join(f"[{c}]" if c in '*?[' else c for c in value)


# ============================================================================
# Predicate builders
# ============================================================================

def _require_value(op: ConditionOperator, value: Any) -> None:
    if value is None:
        raise QueryError(f"Filter operator '{op.suffix or 'equals'}' does not accept null")


def _build_eq(column: str, value: Any, f: Callable) -> Predicate:
    if value is None:
        return f"{column} IS NULL", []
    return f"{column} = ?", [f(value)]


def _build_not(column: str, value: Any, f: Callable) -> Predicate:
    if value is None:
        return f"{column} IS NOT NULL", []
    return f"({column} != ? OR {column} IS NULL)", [f(value)]


def _build_eq_i(column: str, value: Any, f: Callable) -> Predicate:
    _require_value(ConditionOperator.EQ_I, value)
    return f"{CASEFOLD}({column}) = ?", [casefold(str(value))]


def _build_not_i(column: str, value: Any, f: Callable) -> Predicate:
    _require_value(ConditionOperator.NOT_I, value)
    return f"({CASEFOLD}({column}) != ? OR {column} IS NULL)", [casefold(str(value))]


def _split_values(op: ConditionOperator, values: Any, f: Callable) -> Tuple[List[Any], bool]:
    if not isinstance(values, (list, tuple, set)):
        raise QueryError(f"Filter operator '{op.suffix}' requires a list")
    has_null = any(v is None for v in values)
    return [f(v) for v in values if v is not None], has_null


def _build_in(column: str, values: Any, f: Callable) -> Predicate:
    non_null, has_null = _split_values(ConditionOperator.IN, values, f)
    parts = []
    if non_null:
        placeholders = ','.join('?' for _ in non_null)
        parts.append(f"{column} IN ({placeholders})")
    if has_null:
        parts.append(f"{column} IS NULL")
    if not parts:
        return FALSE
    if len(parts) == 1:
        return parts[0], non_null
    return f"({' OR '.join(parts)})", non_null


def _build_not_in(column: str, values: Any, f: Callable) -> Predicate:
    non_null, has_null = _split_values(ConditionOperator.NOT_IN, values, f)
    placeholders = ','.join('?' for _ in non_null)
    if has_null:
        if not non_null:
            return f"{column} IS NOT NULL", []
        return f"({column} NOT IN ({placeholders}) AND {column} IS NOT NULL)", non_null
    if not non_null:
        return TRUE
    return f"({column} NOT IN ({placeholders}) OR {column} IS NULL)", non_null


def _ordering(sql_op: str, op: ConditionOperator):
    def build(column: str, value: Any, f: Callable) -> Predicate:
        _require_value(op, value)
        return f"{column} {sql_op} ?", [f(value)]
    return build


def _pattern(op: ConditionOperator, template: str, negated: bool, insensitive: bool):
    """
    Build a string-pattern predicate.

    Patterns use GLOB. Case-insensitive ones compare the case-folded column
    against a pattern built from the case-folded value. Negated variants also
    match NULL rows.
    """
    def build(column: str, value: Any, f: Callable) -> Predicate:
        _require_value(op, value)
        value = str(value)
        target = column
        if insensitive:
            value = casefold(value)
            target = f"{CASEFOLD}({column})"
        pattern = template.format(escape_glob(value), wild='*')
        match = f"{target} {'NOT GLOB' if negated else 'GLOB'} ?"
        if negated:
            return f"({match} OR {column} IS NULL)", [pattern]
        return match, [pattern]
    return build


def _build_is_null(column: str, value: Any, f: Callable) -> Predicate:
    return (f"{column} IS NULL" if value else f"{column} IS NOT NULL"), []


_CONTAINS = "{wild}{0}{wild}"
_STARTS = "{0}{wild}"
_ENDS = "{wild}{0}"

_BUILDERS: Dict[ConditionOperator, Callable[[str, Any, Callable], Predicate]] = {
    ConditionOperator.EQ: _build_eq,
    ConditionOperator.NOT: _build_not,
    ConditionOperator.EQ_I: _build_eq_i,
    ConditionOperator.NOT_I: _build_not_i,
    ConditionOperator.IN: _build_in,
    ConditionOperator.NOT_IN: _build_not_in,
    ConditionOperator.LT: _ordering("<", ConditionOperator.LT),
    ConditionOperator.LTE: _ordering("<=", ConditionOperator.LTE),
    ConditionOperator.GT: _ordering(">", ConditionOperator.GT),
    ConditionOperator.GTE: _ordering(">=", ConditionOperator.GTE),
    ConditionOperator.CONTAINS: _pattern(ConditionOperator.CONTAINS, _CONTAINS, False, False),
    ConditionOperator.NOT_CONTAINS: _pattern(ConditionOperator.NOT_CONTAINS, _CONTAINS, True, False),
    ConditionOperator.STARTS_WITH: _pattern(ConditionOperator.STARTS_WITH, _STARTS, False, False),
    ConditionOperator.NOT_STARTS_WITH: _pattern(ConditionOperator.NOT_STARTS_WITH, _STARTS, True, False),
    ConditionOperator.ENDS_WITH: _pattern(ConditionOperator.ENDS_WITH, _ENDS, False, False),
    ConditionOperator.NOT_ENDS_WITH: _pattern(ConditionOperator.NOT_ENDS_WITH, _ENDS, True, False),
    ConditionOperator.CONTAINS_I: _pattern(ConditionOperator.CONTAINS_I, _CONTAINS, False, True),
    ConditionOperator.NOT_CONTAINS_I: _pattern(ConditionOperator.NOT_CONTAINS_I, _CONTAINS, True, True),
    ConditionOperator.STARTS_WITH_I: _pattern(ConditionOperator.STARTS_WITH_I, _STARTS, False, True),
    ConditionOperator.NOT_STARTS_WITH_I: _pattern(ConditionOperator.NOT_STARTS_WITH_I, _STARTS, True, True),
    ConditionOperator.ENDS_WITH_I: _pattern(ConditionOperator.ENDS_WITH_I, _ENDS, False, True),
    ConditionOperator.NOT_ENDS_WITH_I: _pattern(ConditionOperator.NOT_ENDS_WITH_I, _ENDS, True, True),
    ConditionOperator.IS_NULL: _build_is_null,
}


def build_condition(op: ConditionOperator, column: str, value: Any,
                    f: Callable = identity) -> Predicate:
    """
    Build a predicate for one filter key.

    Args:
        op: The resolved operator
        column: Qualified, quoted column reference
        value: Filter value supplied by the caller
        f: Converts caller values into stored values

    Returns:
        Tuple of (sql, params)
    """
    return _BUILDERS[op](column, value, f)
