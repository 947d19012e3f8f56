from __future__ import annotations

import json
import random

from markerlint.analysis.checker import analyze
from markerlint.analysis.diagnostics import (
    SUGGESTION_TEXT,
    diagnostic_to_json,
    emit,
    format_message,
    lint_line,
    render_jsonl,
    render_sarif,
    render_text,
    render_violation,
)
from markerlint.analysis.model import PassingMode, RuleKind, Severity, Span, TextEdit, Violation
from markerlint.config import MarkerConfig
from tests.model_helpers import CTX, GUARD, INT, declaration, ref


def _violations(markers: MarkerConfig) -> list[Violation]:
    first = declaration(("a", INT), ("guard", ref(GUARD)), ("ctx", CTX), name="first", line=1)
    second = declaration(("guard", GUARD), ("a", INT), name="second", line=20)
    third = declaration(
        ("a", INT), ("ctx", CTX), name="third", line=5, path="other/module.py"
    )
    violations: list[Violation] = []
    for decl in (first, second, third):
        violations.extend(analyze(decl, markers))
    return violations


class _FixedPlanner:
    def plan(self, violation: Violation) -> tuple[TextEdit, ...]:
        span = violation.parameter.span
        assert span is not None
        return (TextEdit(span=span, replacement="edited"),)


def test_messages_use_one_based_positions(markers: MarkerConfig) -> None:
    violations = analyze(declaration(("a", INT), ("guard", ref(GUARD)), ("ctx", CTX)), markers)
    messages = [format_message(violation) for violation in violations]
    assert messages == [
        "scope guard parameter `guard` (`ScopeGuard`) must be the last parameter, "
        "found at position 2 of 3",
        "scope guard parameter `guard` (`ScopeGuard`) must be passed by value, "
        "found by immutable reference",
        "context parameter `ctx` (`Context`) must be the first parameter, "
        "found at position 3",
    ]


def test_render_violation_anchors_and_relates(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx", CTX))
    diagnostic = render_violation(analyze(decl, markers)[0])
    assert diagnostic.severity is Severity.WARNING
    assert diagnostic.span == decl.parameters[1].span
    assert diagnostic.related == (decl.parameters[0].span,)
    assert diagnostic.suggestion.message == SUGGESTION_TEXT[RuleKind.CONTEXT_NOT_FIRST]
    assert diagnostic.suggestion.edits == ()
    assert diagnostic.declaration == "pkg.module.f"


def test_not_by_value_has_no_related_span(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("guard", ref(GUARD, PassingMode.POINTER)))
    diagnostic = render_violation(analyze(decl, markers)[0])
    assert diagnostic.related == ()
    assert diagnostic.message.endswith("found by pointer")


def test_planner_edits_are_attached(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx", CTX))
    diagnostic = render_violation(analyze(decl, markers)[0], _FixedPlanner())
    assert [edit.replacement for edit in diagnostic.suggestion.edits] == ["edited"]


def test_emit_orders_by_declaration_position_then_rule(markers: MarkerConfig) -> None:
    diagnostics = emit(_violations(markers))
    assert [(d.span.path, d.declaration, d.code) for d in diagnostics] == [
        ("other/module.py", "pkg.module.third", "context-not-first"),
        ("pkg/module.py", "pkg.module.first", "scope-guard-not-last"),
        ("pkg/module.py", "pkg.module.first", "scope-guard-not-by-value"),
        ("pkg/module.py", "pkg.module.first", "context-not-first"),
        ("pkg/module.py", "pkg.module.second", "scope-guard-not-last"),
    ]


def test_emit_is_independent_of_input_order(markers: MarkerConfig) -> None:
    violations = _violations(markers)
    expected = render_jsonl(emit(violations))
    shuffled = list(violations)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert render_jsonl(emit(shuffled)) == expected


def test_emit_flushes_to_sink_in_order(markers: MarkerConfig) -> None:
    received = []
    diagnostics = emit(reversed(_violations(markers)), received.append)
    assert received == diagnostics


def test_lint_line_and_text_rendering(markers: MarkerConfig) -> None:
    decl = declaration(("a", INT), ("ctx", CTX))
    diagnostic = render_violation(analyze(decl, markers)[0])
    assert lint_line(diagnostic) == (
        "pkg/module.py:3:5: warning[context-not-first] context parameter `ctx` "
        "(`Context`) must be the first parameter, found at position 2"
    )
    assert render_text([diagnostic]).splitlines() == [
        lint_line(diagnostic),
        "  = note: related parameter at pkg/module.py:2:5",
        "  = help: move this parameter to the first position",
    ]
    assert render_text([]) == ""


def test_jsonl_uses_sorted_keys(markers: MarkerConfig) -> None:
    diagnostics = emit(_violations(markers), planner=_FixedPlanner())
    lines = render_jsonl(diagnostics).splitlines()
    assert len(lines) == len(diagnostics)
    first = json.loads(lines[0])
    assert first == diagnostic_to_json(diagnostics[0])
    assert list(first) == sorted(first)
    assert first["span"] == {
        "path": "other/module.py",
        "start_line": 7,
        "start_col": 5,
        "end_line": 7,
        "end_col": 8,
    }
    assert first["suggestion"]["edits"][0]["replacement"] == "edited"


def test_sarif_report_shape(markers: MarkerConfig) -> None:
    diagnostics = emit(_violations(markers), planner=_FixedPlanner())
    sarif = json.loads(render_sarif(diagnostics, version="1.2.3"))
    assert sarif["version"] == "2.1.0"
    run = sarif["runs"][0]
    assert run["tool"]["driver"]["name"] == "markerlint"
    assert run["tool"]["driver"]["version"] == "1.2.3"
    assert [rule["id"] for rule in run["tool"]["driver"]["rules"]] == [
        "context-not-first",
        "scope-guard-not-last",
        "scope-guard-not-by-value",
    ]
    results = run["results"]
    assert [result["ruleId"] for result in results] == [d.code for d in diagnostics]
    region = results[0]["locations"][0]["physicalLocation"]["region"]
    assert region == {"startLine": 7, "startColumn": 5, "endLine": 7, "endColumn": 8}
    assert "relatedLocations" in results[0]
    assert "relatedLocations" not in results[2]
    assert results[0]["fixes"][0]["artifactChanges"][0]["replacements"][0][
        "insertedContent"
    ] == {"text": "edited"}


def test_span_string_form() -> None:
    assert str(Span("a.py", 3, 7, 3, 9)) == "a.py:3:7"
