from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, literal_column
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ClauseElement
from sqlalchemy.sql.selectable import TableClause

from ..errors import InvalidScope, ScopeNotFound
from .fields import ScopeBuilder, ScopeDef, ScopeDescriptor
from .filters import expr_from_where_dict

logger = logging.getLogger(__name__)

__all__ = [
    'declared_scopes',
    'evaluate_scope',
    'resolve_predicate',
    'resolve_default_predicate',
    'combine_predicates',
    'render_predicate',
    'TAUTOLOGY',
]

# "1 = 1": keeps a conjunction well-formed when no predicate applies
TAUTOLOGY = literal_column('1') == literal_column('1')


def declared_scopes(model_cls: Any) -> Dict[str, ScopeDef]:
    out: Dict[str, ScopeDef] = {}
    for klass in reversed(getattr(model_cls, '__mro__', ())):
        for key, value in vars(klass).items():
            if isinstance(value, ScopeDescriptor):
                if value.name is None:
                    value.__set_name__(klass, key)
                out[key] = value.build()
    return out


def _check_own_table(model_cls: Any, expr: ClauseElement, label: str) -> None:
    own = model_cls.__table__
    for element in visitors.iterate(expr):
        table = getattr(element, 'table', None)
        if isinstance(table, TableClause) and table is not own:
            raise InvalidScope(
                f"Scope '{label}' on {model_cls.__name__} references table "
                f"'{table.name}'; scopes may only use columns of '{own.name}'"
            )


def evaluate_scope(model_cls: Any, builder: ScopeBuilder, label: str) -> ClauseElement:
    """Evaluate a scope builder against ``model_cls`` into a WHERE predicate.

    ``builder`` may be a callable receiving the model class, a where dict, or
    the name of another scope declared on the model.
    """
    if isinstance(builder, str):
        return resolve_predicate(model_cls, builder)
    if isinstance(builder, dict):
        try:
            expr = expr_from_where_dict(model_cls, builder)
        except ValueError as e:
            raise InvalidScope(f"Scope '{label}' on {model_cls.__name__}: {e}") from e
    elif callable(builder):
        expr = builder(model_cls)
    else:
        raise InvalidScope(f"Unsupported scope form for '{label}': {builder!r}")
    if not isinstance(expr, ClauseElement):
        raise InvalidScope(
            f"Scope '{label}' on {model_cls.__name__} must produce a SQLAlchemy expression, got {expr!r}"
        )
    _check_own_table(model_cls, expr, label)
    return expr


def resolve_predicate(model_cls: Any, scope_name: str) -> ClauseElement:
    """Return the predicate of the scope ``scope_name`` declared on ``model_cls``."""
    sdef = declared_scopes(model_cls).get(scope_name)
    if sdef is None:
        raise ScopeNotFound(model_cls, scope_name)
    return evaluate_scope(model_cls, sdef.builder, scope_name)


def resolve_default_predicate(descriptor) -> Optional[ClauseElement]:
    """Return the relationship's inline predicate evaluated against its child, or None."""
    if descriptor.default_predicate is None:
        return None
    return evaluate_scope(descriptor.child, descriptor.default_predicate, descriptor.name)


def combine_predicates(predicates: Iterable[Optional[ClauseElement]]) -> ClauseElement:
    """AND predicates in the given order; an empty list yields ``1 = 1``."""
    present: List[ClauseElement] = [p for p in predicates if p is not None]
    if not present:
        return TAUTOLOGY
    if len(present) == 1:
        return present[0]
    return and_(*present)


def render_predicate(expr: ClauseElement, dialect: Any = None) -> str:
    """Render a predicate (or any clause) as SQL text with literal values inlined."""
    if dialect is None:
        from sqlalchemy.dialects import sqlite
        dialect = sqlite.dialect()
    return str(expr.compile(dialect=dialect, compile_kwargs={'literal_binds': True}))
