"""
Per-list filter key registry.

Built once per list during post-connect wiring; the compiler only ever does
dictionary lookups against it.
"""

from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from ..exceptions import ConfigurationError, QueryError
from ..fields.conditions import ConditionOperator
from ..relationships import Quantifier

AND = 'AND'
OR = 'OR'
LOGICAL_KEYS = (AND, OR)


class FilterKind(Enum):
    CONDITION = "condition"
    TO_ONE = "to_one"
    QUANTIFIER = "quantifier"


class FilterTarget(NamedTuple):
    kind: FilterKind
    adapter: Any
    operator: Optional[ConditionOperator] = None
    quantifier: Optional[Quantifier] = None


def build_filter_keys(list_adapter) -> Dict[str, FilterTarget]:
    """
    Collect every filter key a list answers.

    Raises:
        ConfigurationError: When two fields claim the same key
    """
    keys: Dict[str, FilterTarget] = {}

    def register(key: str, target: FilterTarget):
        if key in LOGICAL_KEYS:
            raise ConfigurationError(f"{list_adapter.key}: filter key '{key}' is reserved")
        existing = keys.get(key)
        if existing is not None and existing.adapter is not target.adapter:
            raise ConfigurationError(
                f"{list_adapter.key}: filter key '{key}' is claimed by both "
                f"'{existing.adapter.path}' and '{target.adapter.path}'"
            )
        keys[key] = target

    for adapter in list_adapter.field_adapters:
        for key, op in adapter.get_query_conditions().items():
            register(key, FilterTarget(FilterKind.CONDITION, adapter, operator=op))
        if adapter.is_relationship:
            for key, quantifier in adapter.get_relationship_filters().items():
                if quantifier is None:
                    register(key, FilterTarget(FilterKind.TO_ONE, adapter))
                else:
                    register(key, FilterTarget(FilterKind.QUANTIFIER, adapter, quantifier=quantifier))

    return keys


def resolve_filter_key(list_adapter, key: str) -> FilterTarget:
    """
    Look up a filter key on a list.

    Raises:
        QueryError: When the key names no field condition or relationship
    """
    target = list_adapter.filter_keys.get(key)
    if target is None:
        raise QueryError(f"Unknown filter key '{key}' on list '{list_adapter.key}'")
    return target
