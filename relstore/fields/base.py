#!/usr/bin/env python3
"""
Base field adapter.

A field adapter describes one field of a list: its path, whether it is
backed by a column on the list's own table, nullability and default, the
column(s) it contributes to the table schema, and the filter keys it answers.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import ConfigurationError, ValidationError
from .conditions import ConditionCategory, ConditionOperator, conditions_for


def to_id(value: Any) -> Any:
    """Normalise an item id supplied by a caller (ids may arrive as strings)."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid id: {value!r}")
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"Invalid id: {value!r}")
    return value


class FieldAdapter:
    """
    Base class for all field types.

    Subclasses set ``field_type`` and ``condition_categories`` and implement
    add_to_table_schema().
    """

    field_type = "Field"
    condition_categories: Tuple[ConditionCategory, ...] = ()
    is_relationship = False
    many = False

    def __init__(self,
                 is_required: bool = False,
                 default_value: Any = None,
                 is_unique: bool = False,
                 is_indexed: bool = False,
                 is_not_nullable: Optional[bool] = None,
                 default_to: Any = None,
                 sort_key: Optional[str] = None):
        """
        Args:
            is_required: Field must be supplied; implies NOT NULL
            default_value: Application-level default used for nullability
            is_unique: Add a UNIQUE constraint
            is_indexed: Add an index on the column
            is_not_nullable: Explicit NOT NULL override
            default_to: DB default; a callable receives the DatabaseAdapter
                when the schema is built
            sort_key: Column used when ordering by this field
        """
        self.is_required = is_required
        self.default_value = default_value
        self.is_unique = is_unique
        self.is_indexed = is_indexed
        self.sort_key = sort_key
        self._is_not_nullable = is_not_nullable
        self._default_to_supplied = default_to
        self._default_to = None
        self._default_to_resolved = False

        self.path: Optional[str] = None
        self.list_adapter = None

    def __repr__(self):
        owner = self.list_adapter.key if self.list_adapter is not None else '?'
        return f"<{self.field_type} {owner}.{self.path}>"

    def bind(self, list_adapter, path: str) -> None:
        """Attach the adapter to its owning list."""
        if self.list_adapter is not None:
            raise ConfigurationError(f"{self!r} is already bound; create one field instance per list")
        self.list_adapter = list_adapter
        self.path = path

    @property
    def db_path(self) -> str:
        return self.path

    @property
    def real_keys(self) -> List[str]:
        return [self.path]

    def has_real_keys(self) -> bool:
        return True

    @property
    def default_to(self) -> Any:
        if not self._default_to_resolved:
            supplied = self._default_to_supplied
            if callable(supplied):
                self._default_to = supplied(self.list_adapter.parent_adapter)
            else:
                self._default_to = supplied
            self._default_to_resolved = True
        return self._default_to

    @property
    def is_not_nullable(self) -> bool:
        if self._is_not_nullable is not None:
            return self._is_not_nullable
        if self.is_required:
            return True
        # A callable default may return None, so stay permissive
        if callable(self.default_value):
            return False
        return self.default_value is not None

    def column_options(self) -> Dict[str, Any]:
        """Keyword arguments for TableBuilder.add_column()."""
        options = {
            'not_null': self.is_not_nullable,
            'unique': self.is_unique,
            'indexed': self.is_indexed,
        }
        if self.default_to is not None:
            options['default'] = self.default_to
        return options

    def add_to_table_schema(self, table, rels) -> None:
        raise ConfigurationError(
            f"add_to_table_schema() missing from the {self.field_type} field type (used by {self.path})"
        )

    def get_query_conditions(self) -> Dict[str, ConditionOperator]:
        return conditions_for(self.path, self.condition_categories)

    def to_db(self, value: Any) -> Any:
        return value

    def from_db(self, value: Any) -> Any:
        return value
