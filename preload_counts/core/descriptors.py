from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import Table

from ..errors import UnknownRelationship, UnsupportedRelationship
from .fields import HasManyDescriptor, RelationDef, ScopeBuilder
from .naming import classify, singularize
from .utils import find_mapped_class, get_pk_name, get_table, polymorphic_name

logger = logging.getLogger(__name__)

__all__ = ['RelationshipDescriptor', 'declared_relations', 'resolve_relationship']


@dataclass(frozen=True)
class RelationshipDescriptor:
    """Normalized view of one declared one-to-many edge from ``parent`` to ``child``.

    ``polymorphic_type_column`` and ``discriminator`` are set together, only for
    polymorphic relations. ``through`` descriptors are never compiled.
    """

    name: str
    parent: type
    child: Optional[type]
    parent_table: Table
    child_table: Optional[Table]
    parent_key: str
    foreign_key_column: str
    polymorphic_type_column: Optional[str] = None
    discriminator: Optional[str] = None
    through: bool = False
    default_predicate: Optional[ScopeBuilder] = None

    @property
    def is_polymorphic(self) -> bool:
        return self.polymorphic_type_column is not None

    def ensure_direct(self) -> None:
        if self.through:
            raise UnsupportedRelationship(self.parent, self.name)


def declared_relations(model_cls: Any) -> Dict[str, RelationDef]:
    """Collect ``has_many`` declarations of a model, subclasses overriding bases."""
    out: Dict[str, RelationDef] = {}
    for klass in reversed(getattr(model_cls, '__mro__', ())):
        for key, value in vars(klass).items():
            if isinstance(value, HasManyDescriptor):
                if value.name is None:
                    value.__set_name__(klass, key)
                out[key] = value.build()
    return out


def resolve_relationship(parent_cls: Any, name: str) -> RelationshipDescriptor:
    """Resolve the declared relationship ``name`` of ``parent_cls`` into a descriptor.

    Raises:
        UnknownRelationship: the name is not declared, or the child class or
            its foreign key / type columns cannot be found.
        UnsupportedRelationship: the relationship goes through another one.
    """
    rel = declared_relations(parent_cls).get(name)
    if rel is None:
        raise UnknownRelationship(parent_cls, name)
    if rel.through:
        raise UnsupportedRelationship(parent_cls, name, rel.through)

    parent_table = get_table(parent_cls)
    class_name = rel.class_name or classify(singularize(name))
    child_cls = find_mapped_class(parent_cls, class_name)
    if child_cls is None:
        raise UnknownRelationship(parent_cls, name, f"mapped class '{class_name}' not found")
    child_table = get_table(child_cls)

    type_column = None
    discriminator = None
    if rel.as_:
        type_column = f"{rel.as_}_type"
        discriminator = polymorphic_name(parent_cls)
    if rel.foreign_key:
        fk_column = rel.foreign_key
    elif rel.as_:
        fk_column = f"{rel.as_}_id"
    else:
        fk_column = f"{singularize(parent_table.name)}_id"

    for col_name in (fk_column, type_column):
        if col_name and col_name not in child_table.c:
            raise UnknownRelationship(
                parent_cls, name, f"column '{col_name}' not found on table '{child_table.name}'"
            )

    descriptor = RelationshipDescriptor(
        name=name,
        parent=parent_cls,
        child=child_cls,
        parent_table=parent_table,
        child_table=child_table,
        parent_key=get_pk_name(parent_cls),
        foreign_key_column=fk_column,
        polymorphic_type_column=type_column,
        discriminator=discriminator,
        default_predicate=rel.scope,
    )
    logger.debug(
        "Resolved relationship %s.%s -> %s.%s%s",
        parent_cls.__name__, name, child_table.name, fk_column,
        f" ({type_column} = {discriminator!r})" if type_column else "",
    )
    return descriptor
