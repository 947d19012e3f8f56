from __future__ import annotations

from typing import Sequence

from markerlint.analysis.matcher import classify, marker_identity
from markerlint.analysis.model import (
    Declaration,
    DeclarationKind,
    LogicalParameter,
    MarkerKind,
    PassingMode,
    RuleKind,
    Violation,
)
from markerlint.config import MarkerConfig
from markerlint.invariants import require


def check_consistency(declaration: Declaration) -> None:
    """Raise EngineDefect when an adapter produced an impossible declaration."""
    params = declaration.parameters
    indices = [param.index for param in params]
    require(
        indices == list(range(len(params))),
        "parameter indices are not contiguous",
        declaration=declaration.qualname,
        indices=indices,
    )
    receivers = [param for param in params if param.is_receiver]
    require(
        len(receivers) <= 1,
        "declaration has more than one receiver",
        declaration=declaration.qualname,
        receivers=[param.name for param in receivers],
    )
    if receivers:
        require(
            params[0].is_receiver,
            "receiver is not the first parameter",
            declaration=declaration.qualname,
            receiver=receivers[0].name,
        )
        require(
            declaration.kind is DeclarationKind.METHOD,
            "receiver on a non-method declaration",
            declaration=declaration.qualname,
            kind=declaration.kind.value,
        )
    if declaration.expects_receiver:
        require(
            bool(params),
            "receiver expected but parameter list is empty",
            declaration=declaration.qualname,
        )
        require(
            bool(receivers),
            "receiver expected but no parameter is marked as receiver",
            declaration=declaration.qualname,
        )


def logical_parameters(
    declaration: Declaration, config: MarkerConfig
) -> list[LogicalParameter]:
    """Classify parameters and assign logical positions.

    A receiver only occupies a logical slot (position 0) when it carries a
    marker type; an ordinary receiver is invisible to the rules.
    """
    logical: list[LogicalParameter] = []
    for param in declaration.parameters:
        marker = classify(param.type, config)
        if param.is_receiver and marker is MarkerKind.NONE:
            continue
        logical.append(LogicalParameter(parameter=param, marker=marker, position=len(logical)))
    return logical


def _violation(
    declaration: Declaration,
    entry: LogicalParameter,
    rule: RuleKind,
    logical: Sequence[LogicalParameter],
    config: MarkerConfig,
    related: LogicalParameter | None = None,
) -> Violation:
    return Violation(
        declaration=declaration,
        parameter=entry.parameter,
        rule=rule,
        marker_identity=marker_identity(entry.marker, config),
        logical_position=entry.position,
        logical_count=len(logical),
        related=related.parameter if related is not None else None,
    )


def context_comes_first(
    declaration: Declaration,
    logical: Sequence[LogicalParameter],
    config: MarkerConfig,
) -> list[Violation]:
    for entry in logical:
        if entry.marker is not MarkerKind.CONTEXT:
            continue
        if entry.position == 0:
            return []
        return [
            _violation(
                declaration,
                entry,
                RuleKind.CONTEXT_NOT_FIRST,
                logical,
                config,
                related=logical[0],
            )
        ]
    return []


def scope_guard_comes_last(
    declaration: Declaration,
    logical: Sequence[LogicalParameter],
    config: MarkerConfig,
) -> list[Violation]:
    if not logical:
        return []
    last = len(logical) - 1
    return [
        _violation(
            declaration,
            entry,
            RuleKind.SCOPE_GUARD_NOT_LAST,
            logical,
            config,
            related=logical[last],
        )
        for entry in logical
        if entry.marker is MarkerKind.SCOPE_GUARD and entry.position != last
    ]


def scope_guard_passed_by_value(
    declaration: Declaration,
    logical: Sequence[LogicalParameter],
    config: MarkerConfig,
) -> list[Violation]:
    return [
        _violation(declaration, entry, RuleKind.SCOPE_GUARD_NOT_BY_VALUE, logical, config)
        for entry in logical
        if entry.marker is MarkerKind.SCOPE_GUARD
        and entry.parameter.passing_mode is not PassingMode.VALUE
    ]


RULES = (
    context_comes_first,
    scope_guard_comes_last,
    scope_guard_passed_by_value,
)


def analyze(declaration: Declaration, config: MarkerConfig) -> list[Violation]:
    """Evaluate every convention rule against one declaration.

    Declarations without complete span information are skipped and yield
    nothing. Inconsistent declarations raise EngineDefect. The returned
    violations are ordered by logical position, then rule priority.
    """
    if not declaration.analyzable:
        return []
    check_consistency(declaration)
    logical = logical_parameters(declaration, config)
    if all(entry.marker is MarkerKind.NONE for entry in logical):
        return []
    violations: list[Violation] = []
    for rule in RULES:
        violations.extend(rule(declaration, logical, config))
    if declaration.suppressed:
        violations = [
            violation
            for violation in violations
            if violation.rule.value not in declaration.suppressed
        ]
    return sorted(violations, key=lambda violation: violation.sort_key())
