from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

ScopeBuilder = Union[Callable[[Any], Any], Dict[str, Any], str]

@dataclass(frozen=True)
class RelationDef:
    """Declared metadata of one ``has_many`` relationship, as written on the model.

    Attributes:
        name: Attribute name on the declaring model (e.g. "comments").
        class_name: Explicit child class name; inferred from ``name`` when None.
        foreign_key: Explicit child column pointing at the parent primary key.
        as_: Polymorphic role; the child then stores ``<as_>_id`` and ``<as_>_type``.
        through: Name of an intermediate relationship (multi-hop); never countable.
        scope: Default predicate baked into the relationship (callable, where dict,
            or the name of a scope declared on the child).
        description: Free text, informational only.
    """

    name: str
    class_name: Optional[str] = None
    foreign_key: Optional[str] = None
    as_: Optional[str] = None
    through: Optional[str] = None
    scope: Optional[ScopeBuilder] = None
    description: Optional[str] = None

@dataclass(frozen=True)
class ScopeDef:
    """A named, reusable filter attached to a model."""

    name: str
    builder: ScopeBuilder
    description: Optional[str] = None

class HasManyDescriptor:
    """Descriptor placed on mapped classes to declare a one-to-many relationship.

    Accessed on the class it returns itself (so the registry can read its
    metadata); accessed on an instance it returns a live
    :class:`~preload_counts.registry.RelationCollection` bound to that row.
    """

    def __init__(self, **meta):
        self.meta = dict(meta)
        self.name: str | None = None
        self.owner: type | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.owner = owner
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        from ..registry import RelationCollection  # local import to avoid cycles
        return RelationCollection(instance, self.name)

    def build(self) -> RelationDef:
        return RelationDef(name=self.name or '', **self.meta)

class ScopeDescriptor:
    """Descriptor placed on mapped classes to declare a named scope."""

    def __init__(self, builder: ScopeBuilder, *, description: Optional[str] = None):
        self.builder = builder
        self.description = description
        self.name: str | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.name = name

    def build(self) -> ScopeDef:
        return ScopeDef(name=self.name or '', builder=self.builder, description=self.description)

def has_many(
    class_name: Optional[str] = None,
    *,
    foreign_key: Optional[str] = None,
    as_: Optional[str] = None,
    through: Optional[str] = None,
    scope: Optional[ScopeBuilder] = None,
    description: Optional[str] = None,
) -> HasManyDescriptor:
    """Declare a one-to-many relationship whose size can be preloaded.

    Args:
        class_name: Child model class name. Defaults to the singular, class-cased
            attribute name ("active_comments" -> "ActiveComment").
        foreign_key: Child column holding the parent id. Defaults to
            ``<as_>_id`` for polymorphic relations, else ``<singular parent table>_id``.
        as_: Polymorphic role name; the child is also filtered by
            ``<as_>_type = <parent discriminator>``.
        through: Intermediate relationship name. Such relations can be declared
            but registering counts for them raises ``UnsupportedRelationship``.
        scope: Default predicate evaluated against the child class: a callable
            ``lambda Child: <SA expression>``, a where dict
            ``{"deleted_at": {"is_null": True}}``, or a child scope name.

    Examples:
        class Post(Base):
            comments = has_many()
            active_comments = has_many('Comment', scope=lambda C: C.deleted_at.is_(None))
            votes = has_many(as_='votable')
            shares = has_many(foreign_key='shareable_id')

    Returns:
        HasManyDescriptor: A descriptor read by the count registry.
    """
    meta: Dict[str, Any] = {}
    for key, value in (
        ('class_name', class_name),
        ('foreign_key', foreign_key),
        ('as_', as_),
        ('through', through),
        ('scope', scope),
        ('description', description),
    ):
        if value is not None:
            meta[key] = value
    return HasManyDescriptor(**meta)

def scope(builder: ScopeBuilder, *, description: Optional[str] = None) -> ScopeDescriptor:
    """Declare a named scope on a model.

    Usable as an assignment or as a decorator on a function receiving the
    model class:

        class Comment(Base):
            visible = scope({'deleted_at': {'is_null': True}})

            @scope
            def with_even_id(cls):
                return cls.id % 2 == 0

    The predicate may only reference the model's own table.
    """
    return ScopeDescriptor(builder, description=description)
