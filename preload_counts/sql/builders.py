from __future__ import annotations
import logging
from typing import Any, List, Optional, Sequence, Tuple
from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import with_expression
from sqlalchemy.sql.util import ClauseAdapter

from ..core.scopes import combine_predicates

# Centralized SQL builders for count subqueries, augmented queries and live relation selects.

logger = logging.getLogger(__name__)

__all__ = ['compile_count_subquery', 'build_live_select', 'augment']


def _relation_clauses(descriptor, parent_ref, child=None) -> List[Any]:
    """Correlation (and polymorphic) clauses of a relation against ``parent_ref``.

    ``parent_ref`` is either the parent's primary key column (correlated
    subquery) or a literal primary key value (live select for one row).
    ``child`` defaults to the child table; an alias of it may be passed.
    """
    if child is None:
        child = descriptor.child_table
    clauses: List[Any] = [child.c[descriptor.foreign_key_column] == parent_ref]
    if descriptor.is_polymorphic:
        clauses.append(child.c[descriptor.polymorphic_type_column] == descriptor.discriminator)
    return clauses


def compile_count_subquery(descriptor, predicates: Sequence[Any], alias: str):
    """Build ``(SELECT count(*) FROM child WHERE child.fk = parent.pk [AND type] AND preds) AS alias``.

    Args:
        descriptor: A resolved :class:`RelationshipDescriptor`.
        predicates: Predicates over the child table, ANDed in order (default
            predicate first, then named scope). None entries are skipped.
        alias: Column label; unique per augmented query.

    Returns:
        Label: A scalar subquery explicitly correlated to the parent table.
        Self-referential relations count over an alias of the table.
    """
    descriptor.ensure_direct()
    parent_pk = descriptor.parent_table.c[descriptor.parent_key]
    child = descriptor.child_table
    condition = combine_predicates(predicates)
    if child is descriptor.parent_table:
        # correlating to the parent would otherwise drop the child FROM
        child = child.alias()
        condition = ClauseAdapter(child).traverse(condition)
    where = _relation_clauses(descriptor, parent_pk, child)
    where.append(condition)
    subq = (
        select(func.count())
        .select_from(child)
        .where(and_(*where))
        .correlate(descriptor.parent_table)
        .scalar_subquery()
    )
    logger.debug("Compiled count subquery %s for %s.%s", alias, descriptor.parent.__name__, descriptor.name)
    return subq.label(alias)


def build_live_select(descriptor, parent_key_value: Any, predicates: Sequence[Any]) -> Select:
    """Select the child rows of one parent, with the same filters as the count subquery."""
    descriptor.ensure_direct()
    where = _relation_clauses(descriptor, parent_key_value)
    where.append(combine_predicates(predicates))
    stmt = select(descriptor.child).where(and_(*where))
    pk_cols = list(descriptor.child_table.primary_key.columns)
    if pk_cols:
        stmt = stmt.order_by(*pk_cols)
    return stmt


def augment(stmt: Optional[Select], parent_cls: Any, columns: Sequence[Tuple[str, Any]]) -> Select:
    """Return a new select of ``parent_cls`` that also loads each ``(alias, subquery)`` column.

    Each alias must be a ``query_expression()`` attribute of ``parent_cls``; the
    values land on the loaded instances under that attribute. ``stmt`` is never
    mutated (SQLAlchemy statements are generative).
    """
    if stmt is None:
        stmt = select(parent_cls)
    options = [with_expression(getattr(parent_cls, alias), column) for alias, column in columns]
    # refresh instances already present in the identity map
    return stmt.options(*options).execution_options(populate_existing=True)
