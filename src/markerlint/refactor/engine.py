from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import libcst as cst
from libcst.metadata import CodeRange, MetadataWrapper, PositionProvider

from markerlint.analysis.model import (
    PassingMode,
    RuleKind,
    Span,
    TextEdit,
    Violation,
)


@dataclass(frozen=True)
class _LocatedParam:
    parameters: cst.Parameters
    parameters_range: CodeRange
    param: cst.Param
    annotation_range: CodeRange | None


class _ParamLocator(cst.CSTVisitor):
    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(self, line: int, column: int) -> None:
        super().__init__()
        self.target = (line, column)
        self.found: _LocatedParam | None = None

    def visit_Parameters(self, node: cst.Parameters) -> bool:
        if self.found is not None:
            return False
        for param in (*node.posonly_params, *node.params, *node.kwonly_params):
            start = self.get_metadata(PositionProvider, param).start
            if (start.line, start.column) != self.target:
                continue
            annotation_range = None
            if param.annotation is not None:
                annotation_range = self.get_metadata(
                    PositionProvider, param.annotation.annotation
                )
            self.found = _LocatedParam(
                parameters=node,
                parameters_range=self.get_metadata(PositionProvider, node),
                param=param,
                annotation_range=annotation_range,
            )
            return False
        return True


def _cst_dotted(node: cst.BaseExpression) -> str | None:
    if isinstance(node, cst.Name):
        return node.value
    if isinstance(node, cst.Attribute):
        base = _cst_dotted(node.value)
        if base is None:
            return None
        return f"{base}.{node.attr.value}"
    return None


def _span_from_range(path: str, code_range: CodeRange) -> Span:
    # libcst columns are 0-based; spans are 1-based.
    return Span(
        path=path,
        start_line=code_range.start.line,
        start_col=code_range.start.column + 1,
        end_line=code_range.end.line,
        end_col=code_range.end.column + 1,
    )


def _positional_defaults_ok(params: Sequence[cst.Param]) -> bool:
    seen_default = False
    for param in params:
        if param.default is not None:
            seen_default = True
        elif seen_default:
            return False
    return True


class RefactorEngine:
    """Plans advisory edits for convention violations in python sources.

    Edits are computed against the source text and returned to the caller; the
    engine never writes files.
    """

    def __init__(
        self,
        *,
        wrappers: Mapping[str, PassingMode],
        sources: Mapping[str, str] | None = None,
    ) -> None:
        self.wrappers = dict(wrappers)
        self._sources: dict[str, str] = dict(sources or {})
        self._modules: dict[str, MetadataWrapper | None] = {}

    def _wrapper(self, path: str) -> MetadataWrapper | None:
        if path in self._modules:
            return self._modules[path]
        source = self._sources.get(path)
        if source is None:
            try:
                source = Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                self._modules[path] = None
                return None
        try:
            wrapper = MetadataWrapper(cst.parse_module(source))
        except cst.ParserSyntaxError:
            wrapper = None
        self._modules[path] = wrapper
        return wrapper

    def _locate(self, violation: Violation) -> _LocatedParam | None:
        span = violation.parameter.span
        if span is None:
            return None
        wrapper = self._wrapper(span.path)
        if wrapper is None:
            return None
        locator = _ParamLocator(span.start_line, span.start_col - 1)
        wrapper.visit(locator)
        return locator.found

    def plan(self, violation: Violation) -> tuple[TextEdit, ...]:
        located = self._locate(violation)
        if located is None:
            return ()
        if violation.rule is RuleKind.SCOPE_GUARD_NOT_BY_VALUE:
            return self._plan_unwrap(violation, located)
        return self._plan_move(violation, located)

    def _plan_move(self, violation: Violation, located: _LocatedParam) -> tuple[TextEdit, ...]:
        node = located.parameters
        flat = [*node.posonly_params, *node.params, *node.kwonly_params]
        source_index = next(
            (index for index, param in enumerate(flat) if param is located.param), None
        )
        if source_index is None:
            return ()
        target_index = _move_target(violation, flat)
        if target_index is None or target_index == source_index:
            return ()
        commas = [param.comma for param in flat]
        moved = list(flat)
        param = moved.pop(source_index)
        moved.insert(target_index, param)
        moved = [item.with_changes(comma=comma) for item, comma in zip(moved, commas)]
        posonly_count = len(node.posonly_params)
        params_count = len(node.params)
        posonly = moved[:posonly_count]
        positional = moved[posonly_count : posonly_count + params_count]
        kwonly = moved[posonly_count + params_count :]
        if not _positional_defaults_ok([*posonly, *positional]):
            return ()
        updated = node.with_changes(
            posonly_params=posonly,
            params=positional,
            kwonly_params=kwonly,
        )
        replacement = cst.Module(body=[]).code_for_node(updated)
        return (
            TextEdit(
                span=_span_from_range(violation.declaration.path, located.parameters_range),
                replacement=replacement,
            ),
        )

    def _strip_wrappers(self, expr: cst.BaseExpression) -> cst.BaseExpression:
        current = expr
        while isinstance(current, cst.Subscript):
            head = _cst_dotted(current.value)
            if head is None:
                break
            if head not in self.wrappers and head.split(".")[-1] not in self.wrappers:
                break
            if len(current.slice) != 1:
                break
            element = current.slice[0].slice
            if not isinstance(element, cst.Index):
                break
            current = element.value
        return current

    def _plan_unwrap(self, violation: Violation, located: _LocatedParam) -> tuple[TextEdit, ...]:
        annotation = located.param.annotation
        if annotation is None or located.annotation_range is None:
            return ()
        expr = annotation.annotation
        module = cst.Module(body=[])
        if isinstance(expr, cst.SimpleString):
            quote = expr.quote
            try:
                inner = cst.parse_expression(expr.raw_value)
            except cst.ParserSyntaxError:
                return ()
            stripped = self._strip_wrappers(inner)
            if stripped is inner:
                return ()
            replacement = f"{quote}{module.code_for_node(stripped)}{quote}"
        else:
            stripped = self._strip_wrappers(expr)
            if stripped is expr:
                return ()
            replacement = module.code_for_node(stripped)
        return (
            TextEdit(
                span=_span_from_range(violation.declaration.path, located.annotation_range),
                replacement=replacement,
            ),
        )


def _move_target(violation: Violation, flat: Sequence[cst.Param]) -> int | None:
    # The related parameter occupies the slot the offender belongs in: the
    # current first logical parameter (after an ordinary receiver) or the
    # current last one.
    related = violation.related
    if related is None or related.index >= len(flat):
        return None
    return related.index
