"""
Scalar field types.
"""

from datetime import date, datetime
from typing import Any

from ..exceptions import ValidationError
from .base import FieldAdapter, to_id
from .conditions import ConditionCategory


class AutoIncrement(FieldAdapter):
    """Integer primary key assigned by SQLite."""

    field_type = "AutoIncrement"
    condition_categories = (
        ConditionCategory.EQUALITY,
        ConditionCategory.SET,
        ConditionCategory.ORDERING,
    )

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "INTEGER", primary_key=True, autoincrement=True)

    def to_db(self, value: Any) -> Any:
        return to_id(value)


class Text(FieldAdapter):
    field_type = "Text"
    condition_categories = (
        ConditionCategory.EQUALITY,
        ConditionCategory.EQUALITY_INSENSITIVE,
        ConditionCategory.SET,
        ConditionCategory.STRING,
        ConditionCategory.STRING_INSENSITIVE,
    )

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "TEXT", **self.column_options())

    def to_db(self, value: Any) -> Any:
        return value if value is None else str(value)


class Integer(FieldAdapter):
    field_type = "Integer"
    condition_categories = (
        ConditionCategory.EQUALITY,
        ConditionCategory.SET,
        ConditionCategory.ORDERING,
    )

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "INTEGER", **self.column_options())

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{self.path}: expected an integer, got {value!r}")


class Float(FieldAdapter):
    field_type = "Float"
    condition_categories = (
        ConditionCategory.EQUALITY,
        ConditionCategory.SET,
        ConditionCategory.ORDERING,
    )

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "REAL", **self.column_options())

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{self.path}: expected a number, got {value!r}")


class Checkbox(FieldAdapter):
    """Boolean stored as 0/1."""

    field_type = "Checkbox"
    condition_categories = (ConditionCategory.EQUALITY,)

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "INTEGER", **self.column_options())

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        return 1 if value else 0

    def from_db(self, value: Any) -> Any:
        return value if value is None else bool(value)


class DateTime(FieldAdapter):
    """
    Timestamp stored as ISO-8601 text.

    ISO strings sort chronologically, so ordering operators work as long as
    all values share one timezone convention.
    """

    field_type = "DateTime"
    condition_categories = (
        ConditionCategory.EQUALITY,
        ConditionCategory.SET,
        ConditionCategory.ORDERING,
    )

    def add_to_table_schema(self, table, rels) -> None:
        table.add_column(self.path, "TEXT", **self.column_options())

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value).isoformat()
            except ValueError:
                raise ValidationError(f"{self.path}: invalid ISO-8601 timestamp {value!r}")
        raise ValidationError(f"{self.path}: expected a datetime, got {value!r}")

    def from_db(self, value: Any) -> Any:
        if value is None:
            return None
        return datetime.fromisoformat(value)
