from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Row

__all__ = [
    'get_table',
    'get_pk_name',
    'get_pk_column',
    'get_pk_value',
    'find_mapped_class',
    'polymorphic_name',
    'loaded_value',
    'row_entity',
]


def get_table(model_cls: Any):
    table = getattr(model_cls, '__table__', None)
    if table is None:
        raise ValueError(f"Model is not mapped to a table: {getattr(model_cls, '__name__', model_cls)}")
    return table


def get_pk_name(model_cls: Any) -> str:
    """Return the primary key column name for a SQLAlchemy ORM model.

    Raises ValueError if no primary key column can be determined.
    """
    pk_cols = list(get_table(model_cls).primary_key.columns)
    # Single-column primary keys only; the first one is used for correlation
    if pk_cols:
        return pk_cols[0].name
    raise ValueError(f"Primary key column not found for model: {getattr(model_cls, '__name__', model_cls)}")


def get_pk_column(model_cls: Any):
    """Return the Table column of the model's primary key (usable in label()/correlate())."""
    return get_table(model_cls).c[get_pk_name(model_cls)]


def get_pk_value(instance: Any) -> Optional[Any]:
    """Primary key of a persistent instance, read from its identity without emitting SQL.

    Returns None for transient/pending instances.
    """
    identity = sa_inspect(instance).identity
    if not identity:
        return None
    return identity[0]


def find_mapped_class(model_cls: Any, class_name: str) -> Optional[type]:
    """Look up a mapped class by name in the same declarative registry as ``model_cls``."""
    registry = getattr(model_cls, 'registry', None)
    if registry is None:
        registry = sa_inspect(model_cls).registry
    for mapper in registry.mappers:
        if mapper.class_.__name__ == class_name:
            return mapper.class_
    return None


def polymorphic_name(model_cls: Any) -> str:
    """Value stored in a polymorphic child's ``<role>_type`` column for this model."""
    return getattr(model_cls, '__polymorphic_name__', None) or model_cls.__name__


def row_entity(row: Any) -> Any:
    """Return the ORM entity of a result row (first element of a Row, or the row itself)."""
    if isinstance(row, Row):
        return row[0]
    return row


def loaded_value(row: Any, key: str) -> Any:
    """Read an already-loaded value by key without triggering a lazy load.

    Accepts Core/ORM ``Row`` objects (looked up by label) and mapped instances
    (looked up in the instance state's dict).
    """
    if isinstance(row, Row):
        mapping = row._mapping
        if key in mapping:
            return mapping[key]
        row = row[0]
    state = sa_inspect(row, raiseerr=False)
    if state is None:
        return getattr(row, key, None)
    return state.dict.get(key)
