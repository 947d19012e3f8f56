from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer

from markerlint import __version__
from markerlint.analysis.diagnostics import (
    RULE_DESCRIPTIONS,
    SUGGESTION_TEXT,
    render_jsonl,
    render_sarif,
    render_text,
)
from markerlint.analysis.engine import PassResult, run_pass
from markerlint.analysis.model import RuleKind
from markerlint.budget import DeclarationBudget
from markerlint.config import (
    AdapterConfig,
    MarkerConfig,
    adapter_config_from_table,
    adapter_defaults,
    analysis_defaults,
    analysis_exclude,
    analysis_jobs,
    marker_config_from_table,
    marker_defaults,
    merge_payload,
)
from markerlint.exceptions import ConfigError
from markerlint.ingest.adapter_contract import NormalizedIngestBundle
from markerlint.ingest.registry import resolve_adapter

app = typer.Typer(add_completion=False)

_STDOUT_ALIAS = "-"

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


class OutputFormat(str, Enum):
    text = "text"
    jsonl = "jsonl"
    sarif = "sarif"


@dataclass(frozen=True)
class CheckOutcome:
    bundle: NormalizedIngestBundle
    result: PassResult


def _split_csv_entries(entries: List[str] | None) -> list[str]:
    merged: list[str] = []
    for entry in entries or []:
        merged.extend(part.strip() for part in entry.split(",") if part.strip())
    return merged


def resolve_marker_config(
    *,
    context: Optional[str],
    scope_guard: Optional[str],
    root: Path,
    config: Optional[Path],
) -> MarkerConfig:
    payload = merge_payload(
        {"context": context, "scope_guard": scope_guard},
        marker_defaults(root=root, config_path=config),
    )
    markers = marker_config_from_table(payload)
    if markers is None:
        raise typer.BadParameter(
            "both marker identities are required: pass --context and --scope-guard "
            "or set [markers] in markerlint.toml"
        )
    return markers


def resolve_adapter_config(
    *,
    root: Path,
    config: Optional[Path],
    exclude: List[str] | None = None,
) -> AdapterConfig:
    analysis = analysis_defaults(root=root, config_path=config)
    excluded = analysis_exclude(analysis) + _split_csv_entries(exclude)
    return adapter_config_from_table(
        adapter_defaults(root=root, config_path=config),
        exclude=excluded,
    )


def run_check(
    paths: List[Path],
    *,
    markers: MarkerConfig,
    adapter_config: AdapterConfig,
    language: Optional[str] = None,
    jobs: int = 1,
    max_declarations: Optional[int] = None,
) -> CheckOutcome:
    adapter = resolve_adapter(paths=paths, language_id=language)
    bundle = adapter.normalize(paths, config=adapter_config)
    planner = adapter.edit_planner(config=adapter_config, sources=bundle.sources)
    budget = DeclarationBudget(limit=max_declarations) if max_declarations else None
    result = run_pass(
        bundle.iter_declarations(),
        markers,
        jobs=jobs,
        budget=budget,
        planner=planner,
    )
    return CheckOutcome(bundle=bundle, result=result)


def render(outcome: CheckOutcome, output_format: OutputFormat) -> str:
    diagnostics = outcome.result.diagnostics
    if output_format is OutputFormat.jsonl:
        return render_jsonl(diagnostics)
    if output_format is OutputFormat.sarif:
        return render_sarif(diagnostics, version=__version__)
    return render_text(diagnostics)


def _write_output(payload: str, output: Optional[Path]) -> None:
    if output is None or str(output) == _STDOUT_ALIAS:
        if payload:
            typer.echo(payload)
        return
    text = payload if not payload or payload.endswith("\n") else payload + "\n"
    output.write_text(text, encoding="utf-8")


def _summary(outcome: CheckOutcome) -> str:
    result = outcome.result
    line = (
        f"markerlint: {len(result.diagnostics)} diagnostic(s) in "
        f"{result.analyzed} declaration(s) across {len(outcome.bundle.file_paths)} file(s)"
    )
    if result.skipped:
        line += f", {len(result.skipped)} skipped"
    return line


def _exit_code(outcome: CheckOutcome, *, fail_on_violations: bool) -> int:
    if outcome.result.defects:
        return EXIT_ERROR
    if outcome.result.diagnostics and fail_on_violations:
        return EXIT_VIOLATIONS
    return EXIT_CLEAN


@app.command()
def check(
    paths: List[Path] = typer.Argument(None),
    context: Optional[str] = typer.Option(
        None, "--context", help="Nominal identity of the context marker type."
    ),
    scope_guard: Optional[str] = typer.Option(
        None, "--scope-guard", help="Nominal identity of the scope guard marker type."
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    output_format: OutputFormat = typer.Option(OutputFormat.text, "--format"),
    output: Optional[Path] = typer.Option(
        None, "--output", help="Write rendered diagnostics here ('-' for stdout)."
    ),
    language: Optional[str] = typer.Option(
        None, "--language", help="Force a language adapter (python, json-model)."
    ),
    exclude: List[str] = typer.Option(
        None, "--exclude", help="Directory names to skip (repeatable, comma-separated)."
    ),
    jobs: Optional[int] = typer.Option(None, "--jobs", min=1),
    max_declarations: Optional[int] = typer.Option(
        None,
        "--max-declarations",
        min=1,
        help="Stop scheduling declarations after this many.",
    ),
    fail_on_violations: bool = typer.Option(
        True, "--fail-on-violations/--no-fail-on-violations"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
) -> None:
    """Check declarations for context and scope guard parameter conventions."""
    if not paths:
        paths = [root]
    try:
        markers = resolve_marker_config(
            context=context, scope_guard=scope_guard, root=root, config=config
        )
        adapter_config = resolve_adapter_config(root=root, config=config, exclude=exclude)
        if jobs is None:
            jobs = analysis_jobs(analysis_defaults(root=root, config_path=config))
        outcome = run_check(
            paths,
            markers=markers,
            adapter_config=adapter_config,
            language=language,
            jobs=jobs,
            max_declarations=max_declarations,
        )
    except ConfigError as exc:
        typer.echo(f"markerlint: configuration error: {exc}", err=True)
        raise typer.Exit(code=EXIT_ERROR)

    for failure in outcome.bundle.parse_failures:
        typer.echo(f"markerlint: skipped {failure}", err=True)
    for defect in outcome.result.defects:
        typer.echo(f"markerlint: engine defect: {defect}", err=True)
    if outcome.result.truncated:
        typer.echo(
            "markerlint: declaration budget exhausted; results are partial", err=True
        )
    _write_output(render(outcome, output_format), output)
    if not quiet:
        typer.echo(_summary(outcome), err=True)
    raise typer.Exit(code=_exit_code(outcome, fail_on_violations=fail_on_violations))


@app.command()
def explain(
    code: Optional[str] = typer.Argument(None, help="Rule code to describe."),
) -> None:
    """Describe the enforced conventions."""
    if code is None:
        rules = list(RuleKind)
    else:
        try:
            rules = [RuleKind(code.strip())]
        except ValueError:
            known = ", ".join(rule.value for rule in RuleKind)
            raise typer.BadParameter(f"unknown rule {code!r} (known: {known})")
    for index, rule in enumerate(rules):
        if index:
            typer.echo("")
        typer.echo(rule.value)
        typer.echo(f"  {RULE_DESCRIPTIONS[rule]}")
        typer.echo(f"  fix: {SUGGESTION_TEXT[rule]}")


@app.command()
def lsp() -> None:
    """Run the markerlint language server over stdio."""
    from markerlint.server import start

    start()


@app.command()
def version() -> None:
    typer.echo(__version__)
