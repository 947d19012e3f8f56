from __future__ import annotations

import ast
import io
import os
import re
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from markerlint.analysis.matcher import passing_mode_of
from markerlint.analysis.model import (
    RULE_CODES,
    Declaration,
    DeclarationKind,
    GenericParam,
    Parameter,
    PassingMode,
    Span,
    TypeKind,
    TypeRef,
)
from markerlint.config import AdapterConfig
from markerlint.order_contract import ordered_or_sorted

_ALLOW_RE = re.compile(r"#\s*markerlint:\s*allow(?:\[(?P<codes>[^\]]*)\])?")

# Subscripted forms that build a new structural type rather than instantiate a
# nominal one. Their arguments are never looked into.
_COMPOSITE_HEADS = frozenset(
    {
        "Annotated",
        "Callable",
        "ClassVar",
        "Final",
        "Literal",
        "Optional",
        "Tuple",
        "Type",
        "Union",
        "tuple",
        "type",
    }
)

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef


def iter_python_paths(paths: Iterable[Path], *, config: AdapterConfig) -> list[Path]:
    """Expand input paths to python files, pruning excluded directories early."""
    out: list[Path] = []
    for path in paths:
        if path.is_dir():
            for root, dirnames, filenames in os.walk(path, topdown=True):
                dirnames[:] = ordered_or_sorted(
                    (d for d in dirnames if d not in config.exclude_dirs),
                    source="iter_python_paths.dirnames",
                )
                for filename in ordered_or_sorted(
                    filenames, source="iter_python_paths.filenames"
                ):
                    if not filename.endswith(".py"):
                        continue
                    candidate = Path(root) / filename
                    if config.is_ignored_path(candidate):
                        continue
                    out.append(candidate)
        elif path.suffix == ".py" and not config.is_ignored_path(path):
            out.append(path)
    return out


def module_name_for(path: Path) -> str:
    """Dotted module name, walking up through enclosing packages."""
    parts = [] if path.stem == "__init__" else [path.stem]
    parent = path.parent
    while (parent / "__init__.py").exists() and parent.name:
        parts.append(parent.name)
        if parent.parent == parent:
            break
        parent = parent.parent
    return ".".join(reversed(parts)) or path.stem


def wrapper_modes(config: AdapterConfig) -> dict[str, PassingMode]:
    modes: dict[str, PassingMode] = {}
    for name in config.ref_wrappers:
        modes[name] = PassingMode.REF
    for name in config.ref_mut_wrappers:
        modes[name] = PassingMode.REF_MUT
    for name in config.pointer_wrappers:
        modes[name] = PassingMode.POINTER
    return modes


def dotted_name(node: ast.AST) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        if base is None:
            return None
        return f"{base}.{node.attr}"
    return None


@dataclass
class ModuleSymbols:
    module: str
    imports: dict[str, str] = field(default_factory=dict)
    classes: set[str] = field(default_factory=set)
    aliases: dict[str, ast.expr] = field(default_factory=dict)
    typevars: dict[str, ast.expr | None] = field(default_factory=dict)

    def qualify(self, name: str) -> str:
        head, _, rest = name.partition(".")
        if head in self.imports:
            target = self.imports[head]
            return f"{target}.{rest}" if rest else target
        if head in self.classes:
            return f"{self.module}.{name}"
        return name


def _is_type_alias_annotation(node: ast.expr) -> bool:
    name = dotted_name(node)
    return name is not None and name.split(".")[-1] == "TypeAlias"


def _typevar_bound(call: ast.Call) -> ast.expr | None:
    for keyword in call.keywords:
        if keyword.arg == "bound":
            return keyword.value
    return None


def collect_module_symbols(
    tree: ast.Module, module: str, *, is_package: bool = False
) -> ModuleSymbols:
    """Collect top-level imports, classes, aliases and type variables.

    ``is_package`` marks a package ``__init__`` module, whose own name is the
    package that relative imports resolve against.
    """
    symbols = ModuleSymbols(module=module)
    for node in tree.body:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    symbols.imports[alias.asname] = alias.name
                else:
                    head = alias.name.split(".")[0]
                    symbols.imports[head] = head
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                # Relative imports resolve against the importing package.
                parts = module.split(".")
                keep = len(parts) - node.level + (1 if is_package else 0)
                package = ".".join(parts[: max(keep, 0)])
                base = ".".join(part for part in (package, node.module or "") if part)
            else:
                base = node.module or ""
            for alias in node.names:
                if alias.name == "*":
                    continue
                local = alias.asname or alias.name
                symbols.imports[local] = f"{base}.{alias.name}" if base else alias.name
        elif isinstance(node, ast.ClassDef):
            symbols.classes.add(node.name)
        elif isinstance(node, ast.Assign) and len(node.targets) == 1:
            target = node.targets[0]
            if not isinstance(target, ast.Name):
                continue
            value = node.value
            if isinstance(value, ast.Call) and dotted_name(value.func) in {
                "TypeVar",
                "typing.TypeVar",
                "typing_extensions.TypeVar",
            }:
                symbols.typevars[target.id] = _typevar_bound(value)
            elif isinstance(value, (ast.Name, ast.Attribute, ast.Subscript)):
                symbols.aliases[target.id] = value
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            if node.value is not None and _is_type_alias_annotation(node.annotation):
                symbols.aliases[node.target.id] = node.value
        elif _is_type_alias_statement(node):
            symbols.aliases[node.name.id] = node.value  # type: ignore[attr-defined]
    return symbols


def _is_type_alias_statement(node: ast.stmt) -> bool:
    type_alias = getattr(ast, "TypeAlias", None)
    return type_alias is not None and isinstance(node, type_alias)


def _type_param_generics(node: ast.AST) -> dict[str, ast.expr | None]:
    generics: dict[str, ast.expr | None] = {}
    for param in getattr(node, "type_params", None) or ():
        generics[param.name] = getattr(param, "bound", None)
    return generics


class TypeResolver:
    """Turns annotation expressions into TypeRef values for one module scope."""

    def __init__(
        self,
        symbols: ModuleSymbols,
        wrappers: Mapping[str, PassingMode],
        generics: Mapping[str, ast.expr | None] | None = None,
    ) -> None:
        self.symbols = symbols
        self.wrappers = wrappers
        self.generics: Mapping[str, ast.expr | None] = {
            **symbols.typevars,
            **(generics or {}),
        }

    def with_generics(self, generics: Mapping[str, ast.expr | None]) -> TypeResolver:
        if not generics:
            return self
        return TypeResolver(self.symbols, self.wrappers, {**self.generics, **generics})

    def _wrapper_mode(self, head: str) -> PassingMode | None:
        mode = self.wrappers.get(head)
        if mode is None:
            mode = self.wrappers.get(head.split(".")[-1])
        return mode

    def resolve(self, node: ast.expr | None, *, follow: bool = True) -> TypeRef:
        if node is None:
            return TypeRef.unknown()
        if isinstance(node, ast.Constant):
            if isinstance(node.value, str):
                try:
                    parsed = ast.parse(node.value.strip(), mode="eval").body
                except SyntaxError:
                    return TypeRef.unknown()
                return self.resolve(parsed, follow=follow)
            if node.value is None:
                return TypeRef.composite("None")
            return TypeRef.unknown()
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return TypeRef.composite("union")
        if isinstance(node, ast.Tuple):
            return TypeRef.composite("tuple")
        if isinstance(node, ast.Subscript):
            return self._resolve_subscript(node, follow=follow)
        name = dotted_name(node)
        if name is None:
            return TypeRef.unknown()
        return self._resolve_name(name, follow=follow)

    def _resolve_name(self, name: str, *, follow: bool) -> TypeRef:
        if follow and "." not in name:
            if name in self.generics:
                bound_node = self.generics[name]
                bound = self.resolve(bound_node, follow=False) if bound_node is not None else None
                return TypeRef.generic(name, bound)
            if name in self.symbols.aliases:
                target = self.resolve(self.symbols.aliases[name], follow=False)
                return TypeRef.alias(f"{self.symbols.module}.{name}", target)
        return TypeRef.nominal(self.symbols.qualify(name))

    def _resolve_subscript(self, node: ast.Subscript, *, follow: bool) -> TypeRef:
        head = dotted_name(node.value)
        if head is None:
            return TypeRef.unknown()
        slice_node = node.slice
        elements = list(slice_node.elts) if isinstance(slice_node, ast.Tuple) else [slice_node]
        mode = self._wrapper_mode(head)
        if mode is not None:
            if len(elements) != 1:
                return TypeRef.wrapper(mode, TypeRef.unknown())
            return TypeRef.wrapper(mode, self.resolve(elements[0], follow=follow))
        if head.split(".")[-1] in _COMPOSITE_HEADS:
            return TypeRef.composite(head)
        args = tuple(self.resolve(element, follow=False) for element in elements)
        base = self._resolve_name(head, follow=follow)
        if base.kind is TypeKind.NOMINAL:
            return TypeRef.nominal(base.path, args)
        return base


def comment_lines(source: str) -> dict[int, str]:
    comments: dict[int, str] = {}
    try:
        for token in tokenize.generate_tokens(io.StringIO(source).readline):
            if token.type == tokenize.COMMENT:
                comments[token.start[0]] = token.string
    except (tokenize.TokenError, SyntaxError):
        return comments
    return comments


def suppressed_rules(comments: Mapping[int, str], first: int, last: int) -> frozenset[str]:
    codes: set[str] = set()
    for line in range(first, last + 1):
        comment = comments.get(line)
        if comment is None:
            continue
        match = _ALLOW_RE.search(comment)
        if match is None:
            continue
        raw = match.group("codes")
        if raw is None or not raw.strip():
            return RULE_CODES
        for code in raw.split(","):
            code = code.strip()
            if code in RULE_CODES:
                codes.add(code)
    return frozenset(codes)


@dataclass(frozen=True)
class _Scope:
    kind: str
    name: str
    class_path: str = ""
    generics: Mapping[str, ast.expr | None] = field(default_factory=dict)


class _DeclarationCollector(ast.NodeVisitor):
    def __init__(
        self,
        *,
        path: Path,
        source: str,
        symbols: ModuleSymbols,
        resolver: TypeResolver,
    ) -> None:
        self.path = path
        self.path_str = str(path)
        self.lines = source.splitlines()
        self.comments = comment_lines(source)
        self.symbols = symbols
        self.resolver = resolver
        self.scopes: list[_Scope] = []
        self.declarations: list[Declaration] = []

    def _col(self, line: int, byte_col: int) -> int:
        # ast columns are UTF-8 byte offsets; spans use 1-based characters.
        if 1 <= line <= len(self.lines):
            text = self.lines[line - 1].encode("utf-8")[:byte_col]
            return len(text.decode("utf-8", errors="replace")) + 1
        return byte_col + 1

    def _span(self, node: ast.AST) -> Span | None:
        lineno = getattr(node, "lineno", None)
        col = getattr(node, "col_offset", None)
        end_lineno = getattr(node, "end_lineno", None)
        end_col = getattr(node, "end_col_offset", None)
        if lineno is None or col is None or end_lineno is None or end_col is None:
            return None
        return Span(
            path=self.path_str,
            start_line=lineno,
            start_col=self._col(lineno, col),
            end_line=end_lineno,
            end_col=self._col(end_lineno, end_col),
        )

    def _qualname(self, name: str) -> str:
        parts = [self.symbols.module, *(scope.name for scope in self.scopes), name]
        return ".".join(part for part in parts if part)

    def _scope_generics(self) -> dict[str, ast.expr | None]:
        merged: dict[str, ast.expr | None] = {}
        for scope in self.scopes:
            merged.update(scope.generics)
        return merged

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        parent = self.scopes[-1] if self.scopes else None
        if parent is not None and parent.kind == "class":
            class_path = f"{parent.class_path}.{node.name}"
        elif parent is None:
            class_path = f"{self.symbols.module}.{node.name}"
        else:
            class_path = self._qualname(node.name)
        self.scopes.append(
            _Scope(
                kind="class",
                name=node.name,
                class_path=class_path,
                generics=_type_param_generics(node),
            )
        )
        self.generic_visit(node)
        self.scopes.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        params = self._parameters(node.args, self.resolver, receiver_type=None)
        self.declarations.append(
            Declaration(
                name="<lambda>",
                qualname=self._qualname("<lambda>"),
                kind=DeclarationKind.LAMBDA,
                parameters=tuple(params),
                span=self._span(node),
                path=self.path_str,
            )
        )
        self.scopes.append(_Scope(kind="lambda", name="<lambda>"))
        self.generic_visit(node)
        self.scopes.pop()

    def _decorator_names(self, node: FunctionNode) -> set[str]:
        names: set[str] = set()
        for decorator in node.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            name = dotted_name(target)
            if name is not None:
                names.add(name.split(".")[-1])
        return names

    def _visit_function(self, node: FunctionNode) -> None:
        parent = self.scopes[-1] if self.scopes else None
        own_generics = _type_param_generics(node)
        resolver = self.resolver.with_generics({**self._scope_generics(), **own_generics})
        decorators = self._decorator_names(node)
        receiver_type: TypeRef | None = None
        if parent is not None and parent.kind == "class" and "staticmethod" not in decorators:
            owner = TypeRef.nominal(parent.class_path)
            if "classmethod" in decorators:
                receiver_type = TypeRef.composite("type", (owner,))
            else:
                receiver_type = owner
        if parent is None or parent.kind == "class":
            kind = DeclarationKind.METHOD if receiver_type is not None else DeclarationKind.FUNCTION
        else:
            kind = DeclarationKind.CLOSURE
        params = self._parameters(node.args, resolver, receiver_type=receiver_type)
        has_receiver = bool(params) and params[0].is_receiver
        if kind is DeclarationKind.METHOD and not has_receiver:
            kind = DeclarationKind.FUNCTION
        self.declarations.append(
            Declaration(
                name=node.name,
                qualname=self._qualname(node.name),
                kind=kind,
                parameters=tuple(params),
                span=self._signature_span(node),
                path=self.path_str,
                generics=tuple(
                    GenericParam(
                        name=name,
                        bound=resolver.resolve(bound, follow=False) if bound is not None else None,
                    )
                    for name, bound in own_generics.items()
                ),
                expects_receiver=has_receiver,
                suppressed=self._suppressed(node),
            )
        )
        self.scopes.append(_Scope(kind="function", name=node.name, generics=own_generics))
        self.generic_visit(node)
        self.scopes.pop()

    def _signature_span(self, node: FunctionNode) -> Span | None:
        start = self._span(node)
        if start is None:
            return None
        ends: list[ast.AST] = list(
            node.args.posonlyargs + node.args.args + node.args.kwonlyargs
        )
        for extra in (node.args.vararg, node.args.kwarg, node.returns):
            if extra is not None:
                ends.append(extra)
        end_spans = [span for span in (self._span(item) for item in ends) if span is not None]
        if not end_spans:
            return Span(
                path=start.path,
                start_line=start.start_line,
                start_col=start.start_col,
                end_line=start.start_line,
                end_col=start.start_col + 1,
            )
        last = max(end_spans, key=lambda span: (span.end_line, span.end_col))
        return Span(
            path=start.path,
            start_line=start.start_line,
            start_col=start.start_col,
            end_line=last.end_line,
            end_col=last.end_col,
        )

    def _suppressed(self, node: FunctionNode) -> frozenset[str]:
        first = min([node.lineno, *(d.lineno for d in node.decorator_list)])
        return suppressed_rules(self.comments, first, self._signature_last_line(node))

    def _signature_last_line(self, node: FunctionNode) -> int:
        body = node.body[0]
        line = self.lines[body.lineno - 1] if body.lineno <= len(self.lines) else ""
        prefix = line.encode("utf-8")[: body.col_offset].decode("utf-8", errors="replace")
        if prefix.rstrip().endswith(":"):
            # Body starts on the colon line; that line is still signature.
            return body.lineno
        # A decorated nested def or class starts at its first decorator.
        body_start = min(
            [body.lineno, *(d.lineno for d in getattr(body, "decorator_list", ()))]
        )
        last = body_start - 1
        # Comment-only and blank lines directly above the body belong to it.
        while last > node.lineno and self._is_comment_or_blank(last):
            last -= 1
        return last

    def _is_comment_or_blank(self, line: int) -> bool:
        text = self.lines[line - 1].strip() if 1 <= line <= len(self.lines) else ""
        return not text or text.startswith("#")

    def _parameters(
        self,
        args: ast.arguments,
        resolver: TypeResolver,
        *,
        receiver_type: TypeRef | None,
    ) -> list[Parameter]:
        formal = list(args.posonlyargs) + list(args.args) + list(args.kwonlyargs)
        params: list[Parameter] = []
        positional_count = len(args.posonlyargs) + len(args.args)
        for index, arg in enumerate(formal):
            is_receiver = receiver_type is not None and index == 0 and positional_count > 0
            if arg.annotation is not None:
                type_ref = resolver.resolve(arg.annotation)
            elif is_receiver and receiver_type is not None:
                type_ref = receiver_type
            else:
                type_ref = TypeRef.unknown()
            params.append(
                Parameter(
                    name=arg.arg,
                    type=type_ref,
                    passing_mode=passing_mode_of(type_ref),
                    index=index,
                    span=self._span(arg),
                    is_receiver=is_receiver,
                )
            )
        return params


def ingest_python_source(
    source: str,
    *,
    path: Path,
    config: AdapterConfig,
    module: str | None = None,
) -> tuple[Declaration, ...]:
    """Parse python source and return its declarations in source order.

    Raises SyntaxError (or ValueError for null bytes) when the source does not
    parse; callers turn that into a parse failure witness.
    """
    tree = ast.parse(source, filename=str(path))
    symbols = collect_module_symbols(
        tree, module or module_name_for(path), is_package=path.stem == "__init__"
    )
    resolver = TypeResolver(symbols, wrapper_modes(config))
    collector = _DeclarationCollector(
        path=path,
        source=source,
        symbols=symbols,
        resolver=resolver,
    )
    collector.visit(tree)
    return tuple(collector.declarations)
