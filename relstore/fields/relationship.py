#!/usr/bin/env python3
"""
Relationship field type.

``ref`` names the related list, optionally with the back-reference field:
``Relationship(ref='User')`` is one-sided, ``Relationship(ref='User.posts')``
is two-sided and the named field must refer back. ``many=True`` makes the
field to-many.
"""

from typing import Any, Dict, List

from ..exceptions import ConfigurationError, ValidationError
from ..relationships import Cardinality, Quantifier
from .base import FieldAdapter, to_id
from .conditions import ConditionCategory, ConditionOperator, conditions_for


class Relationship(FieldAdapter):
    field_type = "Relationship"
    is_relationship = True

    def __init__(self, ref: str, many: bool = False, **kwargs):
        super().__init__(**kwargs)
        if not ref:
            raise ConfigurationError("Relationship fields require a 'ref'")
        ref_list_key, _, ref_field_path = ref.partition('.')
        self.ref_list_key = ref_list_key
        self.ref_field_path = ref_field_path or None
        self.many = many
        self.rel = None  # attached by consolidate_relationships()

    def _require_rel(self):
        if self.rel is None:
            raise ConfigurationError(f"{self!r} has no relationship descriptor; has the adapter connected?")
        return self.rel

    def has_real_keys(self) -> bool:
        # No column on this list's table when the field is N:N, the left
        # (non-FK) side of a 1:1, or the many side of a 1:N / N:1
        return self._require_rel().holds_fk(self)

    @property
    def is_one_to_one_back_reference(self) -> bool:
        rel = self._require_rel()
        return rel.cardinality is Cardinality.ONE_TO_ONE and not rel.holds_fk(self)

    @property
    def is_not_nullable(self) -> bool:
        # FK columns are nulled when the referenced item is deleted
        return False

    def add_to_table_schema(self, table, rels) -> None:
        if not self.has_real_keys():
            return
        rel = self._require_rel()
        table.add_column(
            self.path, "INTEGER",
            unique=rel.cardinality is Cardinality.ONE_TO_ONE,
            indexed=True,
        )

    def get_query_conditions(self) -> Dict[str, ConditionOperator]:
        if self.has_real_keys():
            return conditions_for(self.path, (ConditionCategory.NULLITY,))
        return {}

    def get_relationship_filters(self) -> Dict[str, Any]:
        """
        Filter keys that traverse this relationship.

        Returns:
            Dict mapping filter key to a Quantifier (to-many) or None (to-one)
        """
        if self.many:
            return {f"{self.path}{q.value}": q for q in Quantifier}
        return {self.path: None}

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        return to_id(value)

    def to_many_values(self, value: Any) -> List[Any]:
        """Validate and normalise the id list submitted for a to-many field."""
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{self.path}: expected a list of ids, got {value!r}")
        return [to_id(v) for v in value]
