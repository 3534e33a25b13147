from __future__ import annotations

__all__ = [
    'PreloadCountsError',
    'UnknownRelationship',
    'UnsupportedRelationship',
    'ScopeNotFound',
    'InvalidScope',
    'DuplicateCountSpec',
]


class PreloadCountsError(ValueError):
    """Base class for configuration errors raised by preload_counts."""


class UnknownRelationship(PreloadCountsError):
    """Relationship name (or its child class/columns) is not declared."""

    def __init__(self, model_cls, name: str, detail: str | None = None):
        self.model_cls = model_cls
        self.name = name
        owner = getattr(model_cls, '__name__', model_cls)
        msg = f"Unknown relationship '{name}' on {owner}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class UnsupportedRelationship(PreloadCountsError):
    """Relationship shape cannot be counted with one correlated subquery (through relations)."""

    def __init__(self, model_cls, name: str, through: str | None = None):
        self.model_cls = model_cls
        self.name = name
        self.through = through
        owner = getattr(model_cls, '__name__', model_cls)
        via = f"goes through '{through}'" if through else "is a through relationship"
        super().__init__(
            f"Relationship '{name}' on {owner} {via}; only direct has_many relationships can be counted"
        )


class ScopeNotFound(PreloadCountsError):
    """Named scope is not declared on the target model."""

    def __init__(self, model_cls, scope_name: str):
        self.model_cls = model_cls
        self.scope_name = scope_name
        owner = getattr(model_cls, '__name__', model_cls)
        super().__init__(f"Scope '{scope_name}' is not declared on {owner}")


class InvalidScope(PreloadCountsError):
    """Scope did not produce a predicate over its own model's table."""


class DuplicateCountSpec(PreloadCountsError):
    """Accessor name registered twice on a strict registry."""
