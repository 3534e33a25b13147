"""preload_counts public API.

Preload the size of one-to-many relationships for many SQLAlchemy rows in a
single query, using correlated ``count(*)`` subqueries instead of one counting
query per row.

Exposes:
- Declarations: has_many, scope
- Registry: CountRegistry (opt-in class attribute), CountSpec
- Building blocks: resolve_relationship, RelationshipDescriptor,
  resolve_predicate, resolve_default_predicate, combine_predicates,
  render_predicate, compile_count_subquery, augment
- Errors: PreloadCountsError and its subclasses
"""
from __future__ import annotations

from .core.descriptors import RelationshipDescriptor, resolve_relationship
from .core.fields import has_many, scope
from .core.scopes import combine_predicates, render_predicate, resolve_default_predicate, resolve_predicate
from .errors import (
    DuplicateCountSpec,
    InvalidScope,
    PreloadCountsError,
    ScopeNotFound,
    UnknownRelationship,
    UnsupportedRelationship,
)
from .registry import CountRegistry, CountSpec, RelationCollection
from .sql.builders import augment, compile_count_subquery

__all__ = [
    'has_many', 'scope',
    'CountRegistry', 'CountSpec', 'RelationCollection',
    'RelationshipDescriptor', 'resolve_relationship',
    'resolve_predicate', 'resolve_default_predicate', 'combine_predicates', 'render_predicate',
    'compile_count_subquery', 'augment',
    'PreloadCountsError', 'UnknownRelationship', 'UnsupportedRelationship',
    'ScopeNotFound', 'InvalidScope', 'DuplicateCountSpec',
]
