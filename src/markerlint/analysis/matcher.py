"""Marker type classification.

This is the only place that interprets parameter types. Rule evaluators see
nothing but the resulting `MarkerKind`, so they stay independent of whichever
host produced the declaration.
"""

from __future__ import annotations

from markerlint.analysis.model import MarkerKind, PassingMode, TypeKind, TypeRef
from markerlint.config import MarkerConfig


def strip_wrappers(type_ref: TypeRef) -> TypeRef:
    """Remove every reference/pointer layer around a type."""
    current = type_ref
    while current.kind is TypeKind.WRAPPER and current.inner is not None:
        current = current.inner
    return current


def wrapper_depth(type_ref: TypeRef) -> int:
    depth = 0
    current = type_ref
    while current.kind is TypeKind.WRAPPER and current.inner is not None:
        depth += 1
        current = current.inner
    return depth


def identity_matches(path: str, identity: str) -> bool:
    if not path or not identity:
        return False
    return path == identity or path.endswith("." + identity)


def _nominal_kind(path: str, config: MarkerConfig) -> MarkerKind:
    context = identity_matches(path, config.context)
    scope_guard = identity_matches(path, config.scope_guard)
    if context and scope_guard:
        # Both identities are suffixes of the same path; the longer one is the
        # more specific match.
        if len(config.context) > len(config.scope_guard):
            return MarkerKind.CONTEXT
        return MarkerKind.SCOPE_GUARD
    if context:
        return MarkerKind.CONTEXT
    if scope_guard:
        return MarkerKind.SCOPE_GUARD
    return MarkerKind.NONE


def _resolved_nominal(type_ref: TypeRef) -> TypeRef | None:
    base = strip_wrappers(type_ref)
    if base.kind is TypeKind.NOMINAL:
        return base
    if base.kind in (TypeKind.ALIAS, TypeKind.GENERIC) and base.inner is not None:
        target = strip_wrappers(base.inner)
        if target.kind is TypeKind.NOMINAL:
            return target
    return None


def classify(type_ref: TypeRef, config: MarkerConfig) -> MarkerKind:
    """Classify a parameter type as context, scope guard or neither.

    Wrapper layers are stripped at any depth. Aliases and type parameters are
    followed one level when their target (or bound) directly names a nominal
    type. Composite and unknown types are never looked into.
    """
    nominal = _resolved_nominal(type_ref)
    if nominal is None:
        return MarkerKind.NONE
    return _nominal_kind(nominal.path, config)


def marker_identity(kind: MarkerKind, config: MarkerConfig) -> str:
    if kind is MarkerKind.CONTEXT:
        return config.context
    if kind is MarkerKind.SCOPE_GUARD:
        return config.scope_guard
    return ""


def passing_mode_of(type_ref: TypeRef) -> PassingMode:
    """Passing mode of a parameter declared with this type.

    The outermost wrapper decides. An alias or type parameter that is itself
    unwrapped contributes the outermost wrapper of its target, one level deep.
    """
    if type_ref.kind is TypeKind.WRAPPER:
        return type_ref.mode
    if type_ref.kind in (TypeKind.ALIAS, TypeKind.GENERIC) and type_ref.inner is not None:
        return type_ref.inner.outer_mode
    return PassingMode.VALUE
