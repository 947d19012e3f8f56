from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable

from markerlint.analysis.checker import analyze
from markerlint.analysis.diagnostics import DiagnosticSink, EditPlanner, emit
from markerlint.analysis.model import Declaration, Diagnostic, Violation
from markerlint.budget import BudgetExhausted, SchedulingBudget, Unlimited
from markerlint.config import MarkerConfig
from markerlint.exceptions import EngineDefect
from markerlint.order_contract import ordered_or_sorted


@dataclass(frozen=True)
class DefectRecord:
    """An engine defect raised while analyzing one declaration."""

    declaration: str
    path: str
    reason: str

    def __str__(self) -> str:
        location = self.path or "<unknown>"
        return f"{location}: {self.declaration}: {self.reason}"


@dataclass(frozen=True)
class _Outcome:
    declaration: Declaration
    violations: tuple[Violation, ...] = ()
    defect: DefectRecord | None = None


@dataclass
class PassResult:
    diagnostics: list[Diagnostic] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    analyzed: int = 0
    skipped: list[str] = field(default_factory=list)
    defects: list[DefectRecord] = field(default_factory=list)
    truncated: bool = False

    @property
    def clean(self) -> bool:
        return not self.diagnostics and not self.defects


def _analyze_one(declaration: Declaration, config: MarkerConfig) -> _Outcome:
    try:
        violations = analyze(declaration, config)
    except EngineDefect as exc:
        return _Outcome(
            declaration=declaration,
            defect=DefectRecord(
                declaration=declaration.qualname,
                path=declaration.path,
                reason=exc.describe(),
            ),
        )
    return _Outcome(declaration=declaration, violations=tuple(violations))


def _schedule(
    declarations: Iterable[Declaration],
    budget: SchedulingBudget,
) -> tuple[list[Declaration], bool]:
    scheduled: list[Declaration] = []
    for declaration in declarations:
        try:
            budget.consume(1)
        except BudgetExhausted:
            return scheduled, True
        scheduled.append(declaration)
    return scheduled, False


def run_pass(
    declarations: Iterable[Declaration],
    config: MarkerConfig,
    *,
    jobs: int = 1,
    budget: SchedulingBudget | None = None,
    planner: EditPlanner | None = None,
    sink: DiagnosticSink | None = None,
) -> PassResult:
    """Analyze declarations independently and emit diagnostics in stable order.

    With ``jobs > 1`` declarations are analyzed on a thread pool. The budget
    is consumed once per scheduled declaration; once it is spent nothing else
    is scheduled, already scheduled declarations still complete, and the result
    is marked truncated. Engine defects are collected per declaration and never
    turn into diagnostics.
    """
    scheduled, truncated = _schedule(declarations, budget or Unlimited())
    outcomes: list[_Outcome]
    if jobs <= 1 or len(scheduled) <= 1:
        outcomes = [_analyze_one(declaration, config) for declaration in scheduled]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            futures: list[Future[_Outcome]] = [
                executor.submit(_analyze_one, declaration, config)
                for declaration in scheduled
            ]
            outcomes = [future.result() for future in futures]

    result = PassResult(truncated=truncated)
    for outcome in ordered_or_sorted(
        outcomes,
        source="run_pass.outcomes",
        key=lambda item: item.declaration.order_key(),
    ):
        declaration = outcome.declaration
        if outcome.defect is not None:
            result.defects.append(outcome.defect)
            continue
        if not declaration.analyzable:
            result.skipped.append(declaration.qualname)
            continue
        result.analyzed += 1
        result.violations.extend(outcome.violations)
    result.diagnostics = emit(result.violations, sink, planner=planner)
    return result
