#!/usr/bin/env python3
"""
Relationship descriptors.

A descriptor captures one relationship edge between two lists: which fields
take part, its cardinality, and where the relationship is physically stored.
Descriptors are produced once by consolidate_relationships() and are
read-only afterwards.

Storage by cardinality:

    1:1  FK column on the right side's table
    1:N  FK column on the right (many) side's table
    N:1  FK column on the left side's table
    N:N  junction table with one FK column per side
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .exceptions import ConfigurationError
from .log_manager import get_logger

logger = get_logger('relationships', component='adapter')


class Cardinality(Enum):
    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:N"


class Quantifier(Enum):
    """Filter-key suffixes for to-many relationship filters."""
    SOME = "_some"
    NONE = "_none"
    EVERY = "_every"


@dataclass
class RelationshipSide:
    list_key: str
    path: str
    adapter: object  # the Relationship field adapter


@dataclass
class RelationshipDescriptor:
    """
    One relationship edge.

    For FK relationships ``table_name``/``column_name`` locate the FK column.
    For N:N ``table_name`` is the junction table and ``left_column`` /
    ``right_column`` hold the ids of the left and right list respectively.
    """
    left: RelationshipSide
    right: Optional[RelationshipSide]
    cardinality: Cardinality
    table_name: str
    left_table: str
    right_table: str
    right_list_key: str
    column_name: Optional[str] = None
    left_column: Optional[str] = None
    right_column: Optional[str] = None

    def __str__(self):
        right = f"{self.right.list_key}.{self.right.path}" if self.right else self.right_list_key
        return f"{self.left.list_key}.{self.left.path} {self.cardinality.value} {right}"

    @property
    def fk_side(self) -> Optional[RelationshipSide]:
        """The side whose table holds the FK column (None for N:N)."""
        if self.cardinality in (Cardinality.ONE_TO_ONE, Cardinality.ONE_TO_MANY):
            return self.right
        if self.cardinality is Cardinality.MANY_TO_ONE:
            return self.left
        return None

    @property
    def referenced_list_key(self) -> Optional[str]:
        """The list the FK column points at (None for N:N)."""
        side = self.fk_side
        if side is None:
            return None
        return self.left.list_key if side is self.right else self.right_list_key

    def holds_fk(self, adapter) -> bool:
        """True when the given field adapter is the one backed by the FK column."""
        side = self.fk_side
        return side is not None and side.adapter is adapter

    def junction_columns(self, adapter) -> Tuple[str, str]:
        """
        Junction columns as seen from one field: (near, far).

        ``near`` holds the id of the item owning ``adapter``; ``far`` holds the
        id of the related item.
        """
        if self.cardinality is not Cardinality.MANY_TO_MANY:
            raise ConfigurationError(f"Relationship {self} has no junction table")
        if adapter is self.left.adapter:
            return self.left_column, self.right_column
        if self.right is not None and adapter is self.right.adapter:
            return self.right_column, self.left_column
        raise ConfigurationError(f"Field {adapter.path} is not part of relationship {self}")

    def columns_referencing(self, list_key: str) -> List[str]:
        """Junction columns that hold ids of the given list."""
        columns = []
        if self.left.list_key == list_key:
            columns.append(self.left_column)
        if self.right_list_key == list_key:
            columns.append(self.right_column)
        return columns


def _cardinality(left_many: bool, right) -> Cardinality:
    if left_many:
        if right is None or right.many:
            return Cardinality.MANY_TO_MANY
        return Cardinality.ONE_TO_MANY
    if right is None or right.many:
        return Cardinality.MANY_TO_ONE
    return Cardinality.ONE_TO_ONE


def consolidate_relationships(list_adapters: Dict[str, object]) -> List[RelationshipDescriptor]:
    """
    Build a descriptor for every declared relationship and attach it to the
    participating field adapters.

    Lists are visited in registration order; within a two-sided pair the
    field seen first becomes the left side.

    Args:
        list_adapters: Registry of list key -> ListAdapter

    Returns:
        List of RelationshipDescriptor

    Raises:
        ConfigurationError: For references to unknown lists or fields, or
            back-references that do not point back
    """
    rels: List[RelationshipDescriptor] = []

    for list_adapter in list_adapters.values():
        for adapter in list_adapter.field_adapters:
            if not adapter.is_relationship or adapter.rel is not None:
                continue

            ref_list = list_adapters.get(adapter.ref_list_key)
            if ref_list is None:
                raise ConfigurationError(
                    f"{list_adapter.key}.{adapter.path} refers to unknown list '{adapter.ref_list_key}'"
                )

            other = None
            if adapter.ref_field_path:
                other = ref_list.field_adapters_by_path.get(adapter.ref_field_path)
                if other is None or not other.is_relationship:
                    raise ConfigurationError(
                        f"{list_adapter.key}.{adapter.path} refers to unknown relationship field "
                        f"'{adapter.ref_list_key}.{adapter.ref_field_path}'"
                    )
                if other.ref_list_key != list_adapter.key or other.ref_field_path != adapter.path:
                    raise ConfigurationError(
                        f"{adapter.ref_list_key}.{other.path} must refer back to "
                        f"'{list_adapter.key}.{adapter.path}'"
                    )
                if other is adapter:
                    raise ConfigurationError(
                        f"{list_adapter.key}.{adapter.path} cannot refer to itself"
                    )

            left = RelationshipSide(list_adapter.key, adapter.path, adapter)
            right = RelationshipSide(ref_list.key, other.path, other) if other is not None else None
            cardinality = _cardinality(adapter.many, other)

            rel_args = dict(
                left=left,
                right=right,
                cardinality=cardinality,
                left_table=list_adapter.table_name,
                right_table=ref_list.table_name,
                right_list_key=ref_list.key,
            )
            if cardinality is Cardinality.MANY_TO_MANY:
                if right is not None:
                    table_name = f"{left.list_key}_{left.path}_{right.list_key}_{right.path}"
                else:
                    table_name = f"{left.list_key}_{left.path}_many"
                rel = RelationshipDescriptor(
                    table_name=table_name,
                    left_column=f"{left.list_key}_left_id",
                    right_column=f"{ref_list.key}_right_id",
                    **rel_args,
                )
            elif cardinality is Cardinality.MANY_TO_ONE:
                rel = RelationshipDescriptor(
                    table_name=list_adapter.table_name, column_name=left.path, **rel_args
                )
            else:
                # 1:1 and 1:N keep the FK on the right
                rel = RelationshipDescriptor(
                    table_name=ref_list.table_name, column_name=right.path, **rel_args
                )

            adapter.rel = rel
            if other is not None:
                other.rel = rel
            rels.append(rel)
            logger.debug(f"Consolidated relationship {rel} -> {rel.table_name}")

    return rels
