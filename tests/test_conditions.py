#!/usr/bin/env python3
"""
Tests for the condition registry and predicate builders.
"""

import pytest

from relstore.exceptions import QueryError
from relstore.fields.conditions import (
    FALSE,
    TRUE,
    ConditionCategory,
    ConditionOperator,
    build_condition,
    casefold,
    conditions_for,
    escape_glob,
)

COL = '"t0"."name"'


class TestConditionRegistry:
    """Test expansion of categories into filter keys."""

    def test_equality_and_set(self):
        keys = conditions_for('name', (ConditionCategory.EQUALITY, ConditionCategory.SET))
        assert keys == {
            'name': ConditionOperator.EQ,
            'name_not': ConditionOperator.NOT,
            'name_in': ConditionOperator.IN,
            'name_not_in': ConditionOperator.NOT_IN,
        }

    def test_string_insensitive_suffixes(self):
        keys = conditions_for('title', (ConditionCategory.STRING_INSENSITIVE,))
        assert set(keys) == {
            'title_contains_i', 'title_not_contains_i',
            'title_starts_with_i', 'title_not_starts_with_i',
            'title_ends_with_i', 'title_not_ends_with_i',
        }

    def test_no_categories(self):
        assert conditions_for('blob', ()) == {}


class TestEqualityConditions:
    """Test equality predicates and their null handling."""

    def test_eq(self):
        assert build_condition(ConditionOperator.EQ, COL, 'Ada') == (f"{COL} = ?", ['Ada'])

    def test_eq_null(self):
        assert build_condition(ConditionOperator.EQ, COL, None) == (f"{COL} IS NULL", [])

    def test_not_matches_null_rows(self):
        sql, params = build_condition(ConditionOperator.NOT, COL, 'Ada')
        assert sql == f"({COL} != ? OR {COL} IS NULL)"
        assert params == ['Ada']

    def test_not_null(self):
        assert build_condition(ConditionOperator.NOT, COL, None) == (f"{COL} IS NOT NULL", [])

    def test_eq_insensitive(self):
        sql, params = build_condition(ConditionOperator.EQ_I, COL, 'ÅDA')
        assert sql == f"casefold({COL}) = ?"
        assert params == ['åda']

    def test_not_insensitive_matches_null_rows(self):
        sql, params = build_condition(ConditionOperator.NOT_I, COL, 'Straße')
        assert sql == f"(casefold({COL}) != ? OR {COL} IS NULL)"
        assert params == ['strasse']

    def test_conversion_applied(self):
        _, params = build_condition(ConditionOperator.EQ, COL, '5', int)
        assert params == [5]


class TestSetConditions:
    """Test _in / _not_in."""

    def test_in(self):
        assert build_condition(ConditionOperator.IN, COL, ['a', 'b']) == (f"{COL} IN (?,?)", ['a', 'b'])

    def test_in_with_null(self):
        sql, params = build_condition(ConditionOperator.IN, COL, ['a', None])
        assert sql == f"({COL} IN (?) OR {COL} IS NULL)"
        assert params == ['a']

    def test_in_empty_is_false(self):
        assert build_condition(ConditionOperator.IN, COL, []) == FALSE

    def test_not_in_empty_is_true(self):
        assert build_condition(ConditionOperator.NOT_IN, COL, []) == TRUE

    def test_not_in_with_null(self):
        sql, params = build_condition(ConditionOperator.NOT_IN, COL, ['a', None])
        assert sql == f"({COL} NOT IN (?) AND {COL} IS NOT NULL)"
        assert params == ['a']

    def test_in_requires_list(self):
        with pytest.raises(QueryError):
            build_condition(ConditionOperator.IN, COL, 'abc')


class TestPatternConditions:
    """Test string pattern predicates."""

    def test_contains_uses_glob(self):
        assert build_condition(ConditionOperator.CONTAINS, COL, 'SQL') == (f"{COL} GLOB ?", ['*SQL*'])

    def test_glob_metacharacters_escaped(self):
        _, params = build_condition(ConditionOperator.STARTS_WITH, COL, 'a*b?')
        assert params == ['a[*]b[?]*']

    def test_insensitive_folds_column_and_pattern(self):
        sql, params = build_condition(ConditionOperator.ENDS_WITH_I, COL, 'ÉTÉ*')
        assert sql == f"casefold({COL}) GLOB ?"
        assert params == ['*été[*]']

    def test_negated_pattern_matches_null(self):
        sql, params = build_condition(ConditionOperator.NOT_CONTAINS, COL, 'x')
        assert sql == f"({COL} NOT GLOB ? OR {COL} IS NULL)"
        assert params == ['*x*']

    def test_pattern_rejects_null(self):
        with pytest.raises(QueryError):
            build_condition(ConditionOperator.CONTAINS_I, COL, None)

    def test_escape_helpers(self):
        assert escape_glob('[x]') == '[[]x]'
        assert casefold('ÄNGSTRÖM') == 'ängström'
        assert casefold(None) is None
        assert casefold(5) == 5


class TestOrderingAndNullity:

    def test_ordering(self):
        assert build_condition(ConditionOperator.GTE, COL, 3) == (f"{COL} >= ?", [3])

    def test_ordering_rejects_null(self):
        with pytest.raises(QueryError):
            build_condition(ConditionOperator.LT, COL, None)

    def test_is_null(self):
        assert build_condition(ConditionOperator.IS_NULL, COL, True) == (f"{COL} IS NULL", [])
        assert build_condition(ConditionOperator.IS_NULL, COL, False) == (f"{COL} IS NOT NULL", [])
