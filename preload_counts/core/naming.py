from __future__ import annotations

from typing import Optional

import inflection

__all__ = [
    'singularize',
    'classify',
    'accessor_name',
    'preload_operation_name',
]


def singularize(name: str) -> str:
    """Singularize the last word of a snake_case name ('active_comments' -> 'active_comment')."""
    if not name:
        return name
    return inflection.singularize(str(name))


def classify(name: str) -> str:
    """Convert a snake_case name to a class name ('active_comment' -> 'ActiveComment')."""
    if not name:
        return name
    return inflection.camelize(str(name))


def accessor_name(relation: str, scope: Optional[str] = None) -> str:
    """Name of the count accessor, also used as the SQL column alias."""
    if scope:
        return f"{scope}_{relation}_count"
    return f"{relation}_count"


def preload_operation_name(relation: str) -> str:
    return f"preload_{singularize(relation)}_counts"
