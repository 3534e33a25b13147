from __future__ import annotations
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import Select, inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_object_session
from sqlalchemy.orm import object_session, query_expression
from sqlalchemy.orm.exc import DetachedInstanceError

from .core.descriptors import RelationshipDescriptor, resolve_relationship
from .core.naming import accessor_name, preload_operation_name
from .core.scopes import resolve_default_predicate, resolve_predicate
from .core.utils import get_pk_value, loaded_value, row_entity
from .errors import DuplicateCountSpec, PreloadCountsError
from .sql.builders import augment, build_live_select, compile_count_subquery

# Project logger
_logger = logging.getLogger("preload_counts")

__all__ = ['CountSpec', 'CountRegistry', 'BoundCounts', 'RelationCollection']


@dataclass(frozen=True, eq=False)
class CountSpec:
    """One (relationship, optional scope) pair: one accessor and one preloaded column."""

    descriptor: RelationshipDescriptor
    scope: Optional[str] = None

    @property
    def relation(self) -> str:
        return self.descriptor.name

    @property
    def accessor_name(self) -> str:
        return accessor_name(self.descriptor.name, self.scope)

    @property
    def alias(self) -> str:
        # doubles as SQL column alias and attribute read back from loaded rows
        return self.accessor_name

    def predicates(self) -> List[Any]:
        """Default predicate first, then the named scope (evaluated on the child)."""
        preds = [resolve_default_predicate(self.descriptor)]
        if self.scope:
            preds.append(resolve_predicate(self.descriptor.child, self.scope))
        return [p for p in preds if p is not None]

    def compile(self):
        return compile_count_subquery(self.descriptor, self.predicates(), self.alias)


async def _run_select(session: Any, stmt: Select) -> List[Any]:
    if isinstance(session, AsyncSession):
        result = await session.scalars(stmt)
    else:
        result = session.scalars(stmt)
    return list(result.all())


class RelationCollection:
    """Live view of a ``has_many`` relationship for one loaded row.

    Returned by accessing a ``has_many`` attribute on an instance
    (``post.comments``). Nothing is queried until :meth:`all` or :meth:`count`
    is awaited.
    """

    def __init__(self, instance: Any, name: str, descriptor: Optional[RelationshipDescriptor] = None):
        self.instance = instance
        self.name = name
        self._descriptor = descriptor

    @property
    def descriptor(self) -> RelationshipDescriptor:
        if self._descriptor is None:
            self._descriptor = resolve_relationship(type(self.instance), self.name)
        return self._descriptor

    def _predicates(self, scope: Optional[str]) -> List[Any]:
        return CountSpec(self.descriptor, scope).predicates()

    def select(self, scope: Optional[str] = None) -> Select:
        """Statement selecting the related rows, optionally narrowed by a child scope."""
        return build_live_select(self.descriptor, get_pk_value(self.instance), self._predicates(scope))

    def _session(self, session: Any) -> Any:
        if session is not None:
            return session
        async_session = async_object_session(self.instance)
        if async_session is not None:
            return async_session
        sync_session = object_session(self.instance)
        if sync_session is None:
            raise DetachedInstanceError(
                f"Parent instance {self.instance!r} is not bound to a Session; "
                f"loading of '{self.name}' cannot proceed"
            )
        return sync_session

    async def all(self, scope: Optional[str] = None, session: Any = None) -> List[Any]:
        """Fetch the related rows. Transient parents have none and issue no query."""
        stmt = self.select(scope)
        if get_pk_value(self.instance) is None:
            return []
        _logger.debug("Loading %s.%s: %s", type(self.instance).__name__, self.name, stmt)
        return await _run_select(self._session(session), stmt)

    async def count(self, scope: Optional[str] = None, session: Any = None) -> int:
        return len(await self.all(scope=scope, session=session))

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<RelationCollection {type(self.instance).__name__}.{self.name}>"


class CountRegistry:
    """Per-model table of generated count operations and accessors.

    A mapped class opts in by declaring the registry as a class attribute, then
    registers relationships once the child models are mapped:

        class Post(Base):
            __tablename__ = 'posts'
            id = Column(Integer, primary_key=True)
            comments = has_many()
            counts = CountRegistry()

        Post.counts.preload_counts('comments', scopes=['with_even_id'])

        stmt = Post.counts.preload_comment_counts()        # Select with count columns
        posts = (await session.scalars(stmt)).all()
        await Post.counts.comments_count(posts[0])         # preloaded, no query
        await posts[0].counts.with_even_id_comments_count()

    Operations and accessors are looked up by name at call time.

    Args:
        strict: When True, registering an accessor name twice raises
            ``DuplicateCountSpec``; by default the last registration wins.
    """

    def __init__(self, *, strict: bool = False):
        self.strict = strict
        self.model: Optional[type] = None
        self.attr_name: Optional[str] = None
        self._specs: Dict[str, CountSpec] = {}
        self._operations: Dict[str, Callable[..., Select]] = {}
        self._accessors: Dict[str, Callable[..., Any]] = {}
        self._descriptors: Dict[str, RelationshipDescriptor] = {}
        self._installed: set[str] = set()

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.model = owner
        self.attr_name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return BoundCounts(self, instance)

    def __getattr__(self, name: str):
        # only reached when regular attribute lookup fails
        table = self.__dict__
        if name in table.get('_operations', {}):
            return table['_operations'][name]
        if name in table.get('_accessors', {}):
            return table['_accessors'][name]
        raise AttributeError(f"{type(self).__name__} has no operation or accessor '{name}'")

    # ---------- Registration ----------
    def preload_counts(self, relation: str, scopes: Union[str, Iterable[str], None] = None) -> 'CountRegistry':
        """Register count preloading for ``relation`` and the given child scopes.

        Generates the operation ``preload_<singular relation>_counts`` and one
        accessor per CountSpec: ``<relation>_count`` plus
        ``<scope>_<relation>_count`` for each scope. Everything is validated
        before anything is registered.

        Raises:
            UnknownRelationship, UnsupportedRelationship, ScopeNotFound,
            InvalidScope, DuplicateCountSpec (strict registries only).
        """
        model = self._require_model()
        if isinstance(scopes, str):
            scopes = [scopes]
        descriptor = resolve_relationship(model, relation)
        specs = [CountSpec(descriptor, None)] + [CountSpec(descriptor, s) for s in (scopes or ())]
        for spec in specs:
            spec.predicates()
            self._check_alias(spec)

        self._descriptors[relation] = descriptor
        for spec in specs:
            self._register_spec(spec)
        op_name = preload_operation_name(relation)
        self._operations[op_name] = self._make_operation(relation)
        _logger.info(
            "Registered %s.%s for %s: %s",
            model.__name__, op_name, relation, ', '.join(s.accessor_name for s in specs),
        )
        return self

    def _require_model(self) -> type:
        if self.model is None:
            raise PreloadCountsError("CountRegistry must be declared as a class attribute of a mapped class")
        return self.model

    def _check_alias(self, spec: CountSpec) -> None:
        alias = spec.alias
        if alias in self._specs:
            if self.strict:
                raise DuplicateCountSpec(f"Count accessor '{alias}' is already registered on {self.model.__name__}")
            return
        if alias in self._installed:
            return
        if hasattr(self.model, alias):
            raise PreloadCountsError(
                f"Cannot register '{alias}' on {self.model.__name__}: attribute already exists"
            )

    def _register_spec(self, spec: CountSpec) -> None:
        alias = spec.alias
        if alias in self._specs:
            _logger.warning("Re-registering count accessor %s.%s; last declaration wins", self.model.__name__, alias)
        if alias not in self._installed:
            # loaded instances receive the preloaded value under the alias
            sa_inspect(self.model).add_property(alias, query_expression())
            self._installed.add(alias)
        self._specs[alias] = spec
        self._accessors[alias] = self._make_accessor(spec)

    def _make_operation(self, relation: str) -> Callable[..., Select]:
        model = self.model

        def operation(stmt: Optional[Select] = None) -> Select:
            columns = [(s.alias, s.compile()) for s in self.specs_for(relation)]
            _logger.debug("Augmenting %s query with %s", model.__name__, ', '.join(a for a, _ in columns))
            return augment(stmt, model, columns)

        operation.__name__ = preload_operation_name(relation)
        operation.__doc__ = f"Select {model.__name__} rows with preloaded '{relation}' counts."
        return operation

    def _make_accessor(self, spec: CountSpec) -> Callable[..., Any]:
        alias = spec.alias

        async def accessor(row: Any, session: Any = None) -> int:
            value = loaded_value(row, alias)
            if value is not None:
                return int(value)
            entity = row_entity(row)
            _logger.debug("%s not preloaded on %r; counting through '%s'", alias, entity, spec.relation)
            collection = RelationCollection(entity, spec.relation, spec.descriptor)
            return len(await collection.all(scope=spec.scope, session=session))

        accessor.__name__ = alias
        return accessor

    # ---------- Lookup ----------
    def operation(self, name: str) -> Callable[..., Select]:
        try:
            return self._operations[name]
        except KeyError:
            raise AttributeError(f"No count operation '{name}' on {getattr(self.model, '__name__', None)}") from None

    def accessor(self, name: str) -> Callable[..., Any]:
        try:
            return self._accessors[name]
        except KeyError:
            raise AttributeError(f"No count accessor '{name}' on {getattr(self.model, '__name__', None)}") from None

    @property
    def operation_names(self) -> Tuple[str, ...]:
        return tuple(self._operations)

    @property
    def accessor_names(self) -> Tuple[str, ...]:
        return tuple(self._accessors)

    @property
    def specs(self) -> Tuple[CountSpec, ...]:
        return tuple(self._specs.values())

    def specs_for(self, relation: str) -> List[CountSpec]:
        return [s for s in self._specs.values() if s.relation == relation]

    def descriptor(self, relation: str) -> RelationshipDescriptor:
        try:
            return self._descriptors[relation]
        except KeyError:
            raise AttributeError(f"Relation '{relation}' has no registered counts") from None

    def subquery_columns(self, relation: str) -> List[Any]:
        """Labeled count columns of ``relation`` for Core-style ``select(Model, *columns)``."""
        self.descriptor(relation)
        return [s.compile() for s in self.specs_for(relation)]


class BoundCounts:
    """Registry view bound to one instance: ``await post.counts.comments_count()``."""

    def __init__(self, registry: CountRegistry, instance: Any):
        self._registry = registry
        self._instance = instance

    def __getattr__(self, name: str):
        accessor = self._registry.accessor(name)
        return functools.partial(accessor, self._instance)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<BoundCounts {self._instance!r}>"
