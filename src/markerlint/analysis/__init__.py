"""Convention analysis: classification, rules and diagnostics."""

from .checker import analyze, logical_parameters
from .diagnostics import (
    EditPlanner,
    emit,
    render_jsonl,
    render_sarif,
    render_text,
    render_violation,
)
from .engine import DefectRecord, PassResult, run_pass
from .matcher import classify
from .model import (
    Declaration,
    DeclarationKind,
    Diagnostic,
    GenericParam,
    MarkerKind,
    Parameter,
    PassingMode,
    RuleKind,
    Span,
    TypeKind,
    TypeRef,
    Violation,
)

__all__ = [
    "Declaration",
    "DeclarationKind",
    "DefectRecord",
    "Diagnostic",
    "EditPlanner",
    "GenericParam",
    "MarkerKind",
    "Parameter",
    "PassResult",
    "PassingMode",
    "RuleKind",
    "Span",
    "TypeKind",
    "TypeRef",
    "Violation",
    "analyze",
    "classify",
    "emit",
    "logical_parameters",
    "render_jsonl",
    "render_sarif",
    "render_text",
    "render_violation",
    "run_pass",
]
