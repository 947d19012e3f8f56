"""Rendering of violations into diagnostics and their output formats."""

from __future__ import annotations

import json
from typing import Callable, Iterable, Protocol, Sequence

from markerlint.analysis.model import (
    Diagnostic,
    MarkerKind,
    RuleKind,
    Severity,
    Span,
    Suggestion,
    TextEdit,
    Violation,
)
from markerlint.invariants import require_not_none
from markerlint.json_types import JSONObject
from markerlint.order_contract import ordered_or_sorted

TOOL_NAME = "markerlint"

MESSAGE_TEMPLATES: dict[RuleKind, str] = {
    RuleKind.CONTEXT_NOT_FIRST: (
        "context parameter `{name}` (`{marker}`) must be the first parameter, "
        "found at position {position}"
    ),
    RuleKind.SCOPE_GUARD_NOT_LAST: (
        "scope guard parameter `{name}` (`{marker}`) must be the last parameter, "
        "found at position {position} of {count}"
    ),
    RuleKind.SCOPE_GUARD_NOT_BY_VALUE: (
        "scope guard parameter `{name}` (`{marker}`) must be passed by value, "
        "found {mode}"
    ),
}

SUGGESTION_TEXT: dict[RuleKind, str] = {
    RuleKind.CONTEXT_NOT_FIRST: "move this parameter to the first position",
    RuleKind.SCOPE_GUARD_NOT_LAST: "move this parameter to the last position",
    RuleKind.SCOPE_GUARD_NOT_BY_VALUE: "remove the reference/pointer wrapper",
}

RULE_DESCRIPTIONS: dict[RuleKind, str] = {
    RuleKind.CONTEXT_NOT_FIRST: (
        f"A {MarkerKind.CONTEXT.label} parameter must occupy the first parameter "
        "position of any declaration that takes one."
    ),
    RuleKind.SCOPE_GUARD_NOT_LAST: (
        f"A {MarkerKind.SCOPE_GUARD.label} parameter must occupy the last "
        "parameter position of any declaration that takes one."
    ),
    RuleKind.SCOPE_GUARD_NOT_BY_VALUE: (
        f"A {MarkerKind.SCOPE_GUARD.label} parameter must be passed by value, "
        "never through a reference or pointer wrapper."
    ),
}


class EditPlanner(Protocol):
    """Host hook that turns a violation into concrete advisory edits."""

    def plan(self, violation: Violation) -> tuple[TextEdit, ...]: ...


DiagnosticSink = Callable[[Diagnostic], None]


def format_message(violation: Violation) -> str:
    template = MESSAGE_TEMPLATES[violation.rule]
    return template.format(
        name=violation.parameter.name,
        marker=violation.marker_identity,
        # Positions are reported 1-based.
        position=violation.logical_position + 1,
        count=violation.logical_count,
        mode=violation.parameter.passing_mode.description,
    )


def render_violation(
    violation: Violation, planner: EditPlanner | None = None
) -> Diagnostic:
    span = require_not_none(
        violation.parameter.span,
        reason="violation on a parameter without a span",
        declaration=violation.declaration.qualname,
        parameter=violation.parameter.name,
    )
    related: tuple[Span, ...] = ()
    if violation.related is not None and violation.related.span is not None:
        if violation.related.span != span:
            related = (violation.related.span,)
    edits = planner.plan(violation) if planner is not None else ()
    return Diagnostic(
        rule=violation.rule,
        severity=Severity.WARNING,
        message=format_message(violation),
        span=span,
        suggestion=Suggestion(message=SUGGESTION_TEXT[violation.rule], edits=tuple(edits)),
        declaration=violation.declaration.qualname,
        related=related,
    )


def emit(
    violations: Iterable[Violation],
    sink: DiagnosticSink | None = None,
    *,
    planner: EditPlanner | None = None,
) -> list[Diagnostic]:
    """Render and flush violations in deterministic order.

    Order is declaration (path, line, column, qualname), then logical
    position, then rule priority. The sink, when given, receives each
    diagnostic in that order.
    """
    ordered = ordered_or_sorted(
        violations,
        source="emit.violations",
        key=lambda violation: violation.sort_key(),
    )
    diagnostics: list[Diagnostic] = []
    for violation in ordered:
        diagnostic = render_violation(violation, planner)
        diagnostics.append(diagnostic)
        if sink is not None:
            sink(diagnostic)
    return diagnostics


def lint_line(diagnostic: Diagnostic) -> str:
    return (
        f"{diagnostic.span}: {diagnostic.severity.value}[{diagnostic.code}] "
        f"{diagnostic.message}"
    )


def render_text(diagnostics: Sequence[Diagnostic]) -> str:
    lines: list[str] = []
    for diagnostic in diagnostics:
        lines.append(lint_line(diagnostic))
        for related in diagnostic.related:
            lines.append(f"  = note: related parameter at {related}")
        lines.append(f"  = help: {diagnostic.suggestion.message}")
    return "\n".join(lines)


def _span_payload(span: Span) -> JSONObject:
    return {
        "path": span.path,
        "start_line": span.start_line,
        "start_col": span.start_col,
        "end_line": span.end_line,
        "end_col": span.end_col,
    }


def diagnostic_to_json(diagnostic: Diagnostic) -> JSONObject:
    return {
        "code": diagnostic.code,
        "severity": diagnostic.severity.value,
        "message": diagnostic.message,
        "declaration": diagnostic.declaration,
        "span": _span_payload(diagnostic.span),
        "related": [_span_payload(span) for span in diagnostic.related],
        "suggestion": {
            "message": diagnostic.suggestion.message,
            "edits": [
                {"span": _span_payload(edit.span), "replacement": edit.replacement}
                for edit in diagnostic.suggestion.edits
            ],
        },
    }


def render_jsonl(diagnostics: Sequence[Diagnostic]) -> str:
    return "\n".join(
        json.dumps(diagnostic_to_json(diagnostic), sort_keys=True)
        for diagnostic in diagnostics
    )


def _sarif_region(span: Span) -> JSONObject:
    return {
        "startLine": span.start_line,
        "startColumn": span.start_col,
        "endLine": span.end_line,
        "endColumn": span.end_col,
    }


def _sarif_location(span: Span) -> JSONObject:
    return {
        "physicalLocation": {
            "artifactLocation": {"uri": span.path},
            "region": _sarif_region(span),
        }
    }


def render_sarif(diagnostics: Sequence[Diagnostic], *, version: str = "") -> str:
    rules = [
        {
            "id": rule.value,
            "name": rule.value,
            "shortDescription": {"text": RULE_DESCRIPTIONS[rule]},
            "help": {"text": SUGGESTION_TEXT[rule]},
            "defaultConfiguration": {"level": Severity.WARNING.value},
        }
        for rule in RuleKind
    ]
    results: list[JSONObject] = []
    for diagnostic in diagnostics:
        result: JSONObject = {
            "ruleId": diagnostic.code,
            "level": diagnostic.severity.value,
            "message": {"text": diagnostic.message},
            "locations": [_sarif_location(diagnostic.span)],
        }
        if diagnostic.related:
            result["relatedLocations"] = [
                {"id": index, **_sarif_location(span)}
                for index, span in enumerate(diagnostic.related)
            ]
        if diagnostic.suggestion.edits:
            result["fixes"] = [
                {
                    "description": {"text": diagnostic.suggestion.message},
                    "artifactChanges": [
                        {
                            "artifactLocation": {"uri": edit.span.path},
                            "replacements": [
                                {
                                    "deletedRegion": _sarif_region(edit.span),
                                    "insertedContent": {"text": edit.replacement},
                                }
                            ],
                        }
                        for edit in diagnostic.suggestion.edits
                    ],
                }
            ]
        results.append(result)
    driver: JSONObject = {"name": TOOL_NAME, "rules": rules}
    if version:
        driver["version"] = version
    sarif = {
        "$schema": "https://json.schemastore.org/sarif-2.1.0.json",
        "version": "2.1.0",
        "runs": [{"tool": {"driver": driver}, "results": results}],
    }
    return json.dumps(sarif, indent=2, sort_keys=True)
