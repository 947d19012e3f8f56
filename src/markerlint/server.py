from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence
from urllib.parse import unquote, urlparse

from pygls.lsp.server import LanguageServer
from lsprotocol.types import (
    TEXT_DOCUMENT_CODE_ACTION,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    CodeAction,
    CodeActionKind,
    CodeActionParams,
    Diagnostic,
    DiagnosticRelatedInformation,
    DiagnosticSeverity,
    Location,
    MessageType,
    Position,
    PublishDiagnosticsParams,
    Range,
    ShowMessageParams,
    TextEdit,
    WorkspaceEdit,
)

from markerlint import __version__
from markerlint.analysis.diagnostics import TOOL_NAME
from markerlint.analysis.engine import DefectRecord, run_pass
from markerlint.analysis.model import Diagnostic as LintDiagnostic, Span
from markerlint.config import (
    AdapterConfig,
    MarkerConfig,
    adapter_config_from_table,
    adapter_defaults,
    marker_config_from_table,
    marker_defaults,
)
from markerlint.exceptions import ConfigError
from markerlint.ingest.python_adapter import PythonAdapter

server = LanguageServer("markerlint", __version__)

_ADAPTER = PythonAdapter()


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _utf16_character(lines: Sequence[str] | None, line: int, col: int) -> int:
    # Span columns count code points; LSP counts UTF-16 code units.
    if lines is None or not 1 <= line <= len(lines):
        return col - 1
    prefix = lines[line - 1][: col - 1]
    return len(prefix.encode("utf-16-le")) // 2


def _span_to_range(span: Span, lines: Sequence[str] | None = None) -> Range:
    # Spans are 1-based; LSP positions are 0-based.
    return Range(
        start=Position(
            line=span.start_line - 1,
            character=_utf16_character(lines, span.start_line, span.start_col),
        ),
        end=Position(
            line=span.end_line - 1,
            character=_utf16_character(lines, span.end_line, span.end_col),
        ),
    )


def _ranges_overlap(left: Range, right: Range) -> bool:
    left_start = (left.start.line, left.start.character)
    left_end = (left.end.line, left.end.character)
    right_start = (right.start.line, right.start.character)
    right_end = (right.end.line, right.end.character)
    return left_start <= right_end and right_start <= left_end


def load_workspace_config(root: Path | None) -> tuple[MarkerConfig | None, AdapterConfig]:
    """Read marker and adapter settings from the workspace markerlint.toml.

    Returns no marker config when the identities are not configured; raises
    ConfigError when they are configured but invalid.
    """
    markers = marker_config_from_table(marker_defaults(root=root))
    adapter_config = adapter_config_from_table(adapter_defaults(root=root))
    return markers, adapter_config


def analyze_document(
    source: str,
    path: Path,
    *,
    markers: MarkerConfig,
    adapter_config: AdapterConfig,
    on_defect: Callable[[DefectRecord], None] | None = None,
) -> list[LintDiagnostic]:
    """Analyze one open document.

    Engine defects never become diagnostics; they are handed to ``on_defect``.
    """
    if path.suffix != ".py":
        return []
    try:
        unit = _ADAPTER.parse_source(source, path=path, config=adapter_config)
    except (SyntaxError, ValueError):
        # Documents are analyzed again once they parse.
        return []
    planner = _ADAPTER.edit_planner(config=adapter_config, sources={str(path): source})
    result = run_pass(unit.declarations, markers, planner=planner)
    if on_defect is not None:
        for defect in result.defects:
            on_defect(defect)
    return result.diagnostics


def to_lsp_diagnostic(
    diagnostic: LintDiagnostic, uri: str, lines: Sequence[str] | None = None
) -> Diagnostic:
    return Diagnostic(
        range=_span_to_range(diagnostic.span, lines),
        message=diagnostic.message,
        severity=DiagnosticSeverity.Warning,
        code=diagnostic.code,
        source=TOOL_NAME,
        related_information=[
            DiagnosticRelatedInformation(
                location=Location(uri=uri, range=_span_to_range(span, lines)),
                message="related parameter",
            )
            for span in diagnostic.related
        ]
        or None,
    )


def code_actions_for(
    diagnostics: list[LintDiagnostic],
    uri: str,
    requested: Range,
    lines: Sequence[str] | None = None,
) -> list[CodeAction]:
    actions: list[CodeAction] = []
    for diagnostic in diagnostics:
        if not diagnostic.suggestion.edits:
            continue
        if not _ranges_overlap(_span_to_range(diagnostic.span, lines), requested):
            continue
        title = f"markerlint: {diagnostic.suggestion.message}"
        edits = [
            TextEdit(range=_span_to_range(edit.span, lines), new_text=edit.replacement)
            for edit in diagnostic.suggestion.edits
        ]
        actions.append(
            CodeAction(
                title=title,
                kind=CodeActionKind.QuickFix,
                diagnostics=[to_lsp_diagnostic(diagnostic, uri, lines)],
                edit=WorkspaceEdit(changes={uri: edits}),
            )
        )
    return actions


def _workspace_root(ls: LanguageServer) -> Path | None:
    root_path = ls.workspace.root_path
    return Path(root_path) if root_path else None


def show_defect(ls: LanguageServer, defect: DefectRecord) -> None:
    ls.window_show_message(
        ShowMessageParams(
            type=MessageType.Error, message=f"markerlint: engine defect: {defect}"
        )
    )


def _document_diagnostics(
    ls: LanguageServer, uri: str
) -> tuple[list[LintDiagnostic], list[str]]:
    try:
        markers, adapter_config = load_workspace_config(_workspace_root(ls))
    except ConfigError as exc:
        ls.window_show_message(
            ShowMessageParams(
                type=MessageType.Error, message=f"markerlint: configuration error: {exc}"
            )
        )
        return [], []
    if markers is None:
        return [], []
    document = ls.workspace.get_text_document(uri)
    diagnostics = analyze_document(
        document.source,
        _uri_to_path(uri),
        markers=markers,
        adapter_config=adapter_config,
        on_defect=lambda defect: show_defect(ls, defect),
    )
    return diagnostics, document.source.splitlines()


def _publish(ls: LanguageServer, uri: str) -> None:
    found, lines = _document_diagnostics(ls, uri)
    diagnostics = [to_lsp_diagnostic(diagnostic, uri, lines) for diagnostic in found]
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_CODE_ACTION)
def code_action(ls: LanguageServer, params: CodeActionParams) -> list[CodeAction]:
    uri = params.text_document.uri
    found, lines = _document_diagnostics(ls, uri)
    return code_actions_for(found, uri, params.range, lines)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
