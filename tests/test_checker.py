from __future__ import annotations

from dataclasses import replace

import pytest

from markerlint.analysis.checker import (
    analyze,
    check_consistency,
    context_comes_first,
    logical_parameters,
    scope_guard_comes_last,
    scope_guard_passed_by_value,
)
from markerlint.analysis.model import (
    DeclarationKind,
    MarkerKind,
    PassingMode,
    RuleKind,
    TypeRef,
)
from markerlint.config import MarkerConfig
from markerlint.exceptions import EngineDefect
from tests.model_helpers import CTX, GUARD, INT, declaration, method, ref

SELF = TypeRef.nominal("pkg.Service")


def _rules(violations) -> list[tuple[str, RuleKind]]:
    return [(violation.parameter.name, violation.rule) for violation in violations]


def test_no_markers_no_violations(markers: MarkerConfig) -> None:
    assert analyze(declaration(("a", INT), ("b", INT)), markers) == []
    assert analyze(declaration(), markers) == []


def test_context_first_is_clean(markers: MarkerConfig) -> None:
    assert analyze(declaration(("ctx", CTX), ("a", INT), ("b", INT)), markers) == []


def test_second_context_after_first_is_not_flagged(markers: MarkerConfig) -> None:
    assert analyze(declaration(("ctx", CTX), ("a", INT), ("ctx2", CTX)), markers) == []


def test_context_not_first(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("a", INT), ("ctx", CTX)), markers)
    assert _rules(violations) == [("ctx", RuleKind.CONTEXT_NOT_FIRST)]
    assert violations[0].logical_position == 1
    assert violations[0].related is not None
    assert violations[0].related.name == "a"


def test_only_first_misplaced_context_is_flagged(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx1", CTX), ("b", INT), ("ctx2", CTX))
    assert _rules(analyze(decl, markers)) == [("ctx1", RuleKind.CONTEXT_NOT_FIRST)]


def test_scope_guard_not_last(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("guard", GUARD), ("a", INT)), markers)
    assert _rules(violations) == [("guard", RuleKind.SCOPE_GUARD_NOT_LAST)]
    assert violations[0].logical_count == 2
    assert violations[0].related is not None
    assert violations[0].related.name == "a"


def test_scope_guard_last_is_clean(markers: MarkerConfig) -> None:
    assert analyze(declaration(("a", INT), ("guard", GUARD)), markers) == []


def test_every_misplaced_scope_guard_is_flagged(markers: MarkerConfig) -> None:
    decl = declaration(("g1", GUARD), ("g2", GUARD), ("g3", GUARD))
    assert _rules(analyze(decl, markers)) == [
        ("g1", RuleKind.SCOPE_GUARD_NOT_LAST),
        ("g2", RuleKind.SCOPE_GUARD_NOT_LAST),
    ]


def test_scope_guard_by_reference_at_end(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("a", INT), ("guard", ref(GUARD))), markers)
    assert _rules(violations) == [("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE)]


def test_scope_guard_by_reference_first_reports_both(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("guard", ref(GUARD)), ("a", INT)), markers)
    assert _rules(violations) == [
        ("guard", RuleKind.SCOPE_GUARD_NOT_LAST),
        ("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE),
    ]


@pytest.mark.parametrize(
    "mode", [PassingMode.REF, PassingMode.REF_MUT, PassingMode.POINTER]
)
def test_every_wrapper_mode_is_not_by_value(markers: MarkerConfig, mode: PassingMode) -> None:
    violations = analyze(declaration(("guard", ref(GUARD, mode))), markers)
    assert _rules(violations) == [("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE)]


def test_receiver_that_is_a_context_counts_as_first(markers: MarkerConfig) -> None:
    decl = method(("self", ref(CTX)), ("a", INT), ("b", INT))
    assert analyze(decl, markers) == []


def test_ordinary_receiver_is_not_a_logical_position(markers: MarkerConfig) -> None:
    assert analyze(method(("self", SELF), ("ctx", CTX), ("a", INT)), markers) == []
    violations = analyze(method(("self", SELF), ("a", INT), ("ctx", CTX)), markers)
    assert _rules(violations) == [("ctx", RuleKind.CONTEXT_NOT_FIRST)]
    assert violations[0].logical_position == 1


def test_scope_guard_receiver_must_be_last(markers: MarkerConfig) -> None:
    violations = analyze(method(("self", GUARD), ("force", INT)), markers)
    assert _rules(violations) == [("self", RuleKind.SCOPE_GUARD_NOT_LAST)]


def test_violations_ordered_by_position_then_rule(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("guard", ref(GUARD)), ("ctx", CTX))
    assert _rules(analyze(decl, markers)) == [
        ("guard", RuleKind.SCOPE_GUARD_NOT_LAST),
        ("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE),
        ("ctx", RuleKind.CONTEXT_NOT_FIRST),
    ]


def test_at_most_one_context_violation(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("c1", CTX), ("c2", CTX), ("c3", ref(CTX)))
    rules = [violation.rule for violation in analyze(decl, markers)]
    assert rules.count(RuleKind.CONTEXT_NOT_FIRST) == 1


def test_suppressed_rules_are_dropped(markers: MarkerConfig) -> None:
    decl = declaration(
        ("guard", ref(GUARD)),
        ("a", INT),
        suppressed=frozenset({RuleKind.SCOPE_GUARD_NOT_LAST.value}),
    )
    assert _rules(analyze(decl, markers)) == [("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE)]


def test_unanalyzable_declarations_are_skipped(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx", CTX))
    assert analyze(replace(decl, span=None), markers) == []
    params = (decl.parameters[0], replace(decl.parameters[1], span=None))
    assert analyze(replace(decl, parameters=params), markers) == []


def test_logical_parameters_positions(markers: MarkerConfig) -> None:
    logical = logical_parameters(method(("self", SELF), ("ctx", CTX), ("g", GUARD)), markers)
    assert [(entry.parameter.name, entry.marker, entry.position) for entry in logical] == [
        ("ctx", MarkerKind.CONTEXT, 0),
        ("g", MarkerKind.SCOPE_GUARD, 1),
    ]


def test_rules_are_independent(markers: MarkerConfig) -> None:
    decl = declaration(("guard", ref(GUARD)), ("ctx", CTX))
    logical = logical_parameters(decl, markers)
    assert _rules(context_comes_first(decl, logical, markers)) == [
        ("ctx", RuleKind.CONTEXT_NOT_FIRST)
    ]
    assert _rules(scope_guard_comes_last(decl, logical, markers)) == [
        ("guard", RuleKind.SCOPE_GUARD_NOT_LAST)
    ]
    assert _rules(scope_guard_passed_by_value(decl, logical, markers)) == [
        ("guard", RuleKind.SCOPE_GUARD_NOT_BY_VALUE)
    ]


def test_marker_identity_recorded_on_violation(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("a", INT), ("ctx", CTX)), markers)
    assert violations[0].marker_identity == "Context"


def test_consistency_rejects_non_contiguous_indices(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx", CTX))
    broken = (decl.parameters[0], replace(decl.parameters[1], index=5))
    with pytest.raises(EngineDefect, match="contiguous"):
        analyze(replace(decl, parameters=broken), markers)


def test_consistency_rejects_receiver_on_function() -> None:
    decl = method(("self", SELF), ("a", INT))
    with pytest.raises(EngineDefect, match="non-method"):
        check_consistency(replace(decl, kind=DeclarationKind.FUNCTION))


def test_consistency_rejects_misplaced_or_duplicate_receivers() -> None:
    decl = method(("self", SELF), ("a", INT))
    moved = (
        replace(decl.parameters[0], is_receiver=False),
        replace(decl.parameters[1], is_receiver=True),
    )
    with pytest.raises(EngineDefect, match="first parameter"):
        check_consistency(replace(decl, parameters=moved))
    doubled = (decl.parameters[0], replace(decl.parameters[1], is_receiver=True))
    with pytest.raises(EngineDefect, match="more than one receiver"):
        check_consistency(replace(decl, parameters=doubled))


def test_consistency_rejects_missing_expected_receiver() -> None:
    decl = method(("self", SELF))
    with pytest.raises(EngineDefect, match="parameter list is empty"):
        check_consistency(replace(decl, parameters=()))
    unmarked = (replace(decl.parameters[0], is_receiver=False),)
    with pytest.raises(EngineDefect, match="no parameter is marked"):
        check_consistency(replace(decl, parameters=unmarked))
