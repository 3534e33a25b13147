from __future__ import annotations

from typing import Any, Callable, Dict, List

from sqlalchemy import and_, func

# Global operator registry (extensible)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col == v,
    'ne': lambda col, v: col != v,
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'not_like': lambda col, v: ~col.like(v),
    'ilike': lambda col, v: getattr(col, 'ilike', lambda x: func.lower(col).like(func.lower(x)))(v),
    'in': lambda col, v: col.in_(v if isinstance(v, (list, tuple, set)) else [v]),
    'not_in': lambda col, v: ~col.in_(v if isinstance(v, (list, tuple, set)) else [v]),
    'between': lambda col, v: col.between(v[0], v[1]),
    'is_null': lambda col, v: col.is_(None) if v else col.is_not(None),
    'starts_with': lambda col, v: col.like(f"{v}%"),
    'ends_with': lambda col, v: col.like(f"%{v}"),
}


def register_operator(name: str, fn: Callable[[Any, Any], Any]):
    OPERATOR_REGISTRY[name] = fn


def expr_from_where_dict(model_cls, wdict: Dict[str, Any]):
    """Build a SQLAlchemy conjunction from a simple where dict: {col: {op: val}}.

    A bare value instead of an operator map means equality, so
    ``{'deleted_at': None}`` renders as ``deleted_at IS NULL``.
    """
    exprs: List[Any] = []
    for col_name, op_map in (wdict or {}).items():
        col = model_cls.__table__.c.get(col_name)
        if col is None:
            raise ValueError(f"Unknown where column: {col_name}")
        if not isinstance(op_map, dict):
            op_map = {'eq': op_map}
        for op_name, val in op_map.items():
            op_fn = OPERATOR_REGISTRY.get(op_name)
            if not op_fn:
                raise ValueError(f"Unknown where operator: {op_name}")
            exprs.append(op_fn(col, val))
    if not exprs:
        return None
    return and_(*exprs)
