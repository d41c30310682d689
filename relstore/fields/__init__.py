"""
Field types for relstore lists.

Example usage:
    from relstore.fields import Text, Integer, Relationship

    adapter.new_list_adapter('Post', {
        'title': Text(is_required=True),
        'views': Integer(default_value=0),
        'author': Relationship(ref='User.posts'),
    })
"""

from .base import FieldAdapter, to_id
from .conditions import (
    ConditionCategory,
    ConditionOperator,
    build_condition,
)
from .scalars import AutoIncrement, Checkbox, DateTime, Float, Integer, Text
from .relationship import Relationship

__all__ = [
    # Base
    'FieldAdapter',
    'to_id',

    # Condition registry
    'ConditionCategory',
    'ConditionOperator',
    'build_condition',

    # Field types
    'AutoIncrement',
    'Checkbox',
    'DateTime',
    'Float',
    'Integer',
    'Text',
    'Relationship',
]
