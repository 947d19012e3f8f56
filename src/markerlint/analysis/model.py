from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, order=True)
class Span:
    """Source range: 1-based lines and columns, end column exclusive."""

    path: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.path}:{self.start_line}:{self.start_col}"

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


class PassingMode(str, Enum):
    VALUE = "value"
    REF = "ref"
    REF_MUT = "ref_mut"
    POINTER = "pointer"

    @property
    def description(self) -> str:
        return _PASSING_MODE_TEXT[self]


_PASSING_MODE_TEXT = {
    PassingMode.VALUE: "by value",
    PassingMode.REF: "by immutable reference",
    PassingMode.REF_MUT: "by mutable reference",
    PassingMode.POINTER: "by pointer",
}


class TypeKind(str, Enum):
    NOMINAL = "nominal"
    WRAPPER = "wrapper"
    ALIAS = "alias"
    GENERIC = "generic"
    COMPOSITE = "composite"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeRef:
    kind: TypeKind
    path: str = ""
    mode: PassingMode = PassingMode.VALUE
    inner: TypeRef | None = None
    args: tuple[TypeRef, ...] = ()

    @classmethod
    def nominal(cls, path: str, args: tuple[TypeRef, ...] = ()) -> TypeRef:
        return cls(TypeKind.NOMINAL, path=path, args=args)

    @classmethod
    def wrapper(cls, mode: PassingMode, inner: TypeRef) -> TypeRef:
        return cls(TypeKind.WRAPPER, mode=mode, inner=inner)

    @classmethod
    def alias(cls, path: str, target: TypeRef) -> TypeRef:
        return cls(TypeKind.ALIAS, path=path, inner=target)

    @classmethod
    def generic(cls, name: str, bound: TypeRef | None = None) -> TypeRef:
        return cls(TypeKind.GENERIC, path=name, inner=bound)

    @classmethod
    def composite(cls, path: str = "", args: tuple[TypeRef, ...] = ()) -> TypeRef:
        return cls(TypeKind.COMPOSITE, path=path, args=args)

    @classmethod
    def unknown(cls) -> TypeRef:
        return cls(TypeKind.UNKNOWN)

    @property
    def outer_mode(self) -> PassingMode:
        """Passing mode contributed by the outermost wrapper, if any."""
        if self.kind is TypeKind.WRAPPER:
            return self.mode
        return PassingMode.VALUE

    def display(self) -> str:
        if self.kind is TypeKind.WRAPPER and self.inner is not None:
            return f"{_WRAPPER_DISPLAY[self.mode]}{self.inner.display()}"
        if self.kind is TypeKind.UNKNOWN:
            return "<unknown>"
        if self.args:
            rendered = ", ".join(arg.display() for arg in self.args)
            return f"{self.path}[{rendered}]"
        return self.path or f"<{self.kind.value}>"


_WRAPPER_DISPLAY = {
    PassingMode.VALUE: "",
    PassingMode.REF: "&",
    PassingMode.REF_MUT: "&mut ",
    PassingMode.POINTER: "*",
}


@dataclass(frozen=True)
class Parameter:
    name: str
    type: TypeRef
    passing_mode: PassingMode
    index: int
    span: Span | None
    is_receiver: bool = False


@dataclass(frozen=True)
class GenericParam:
    name: str
    bound: TypeRef | None = None


class DeclarationKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    CLOSURE = "closure"
    LAMBDA = "lambda"


@dataclass(frozen=True)
class Declaration:
    name: str
    qualname: str
    kind: DeclarationKind
    parameters: tuple[Parameter, ...]
    span: Span | None
    path: str = ""
    generics: tuple[GenericParam, ...] = ()
    expects_receiver: bool = False
    suppressed: frozenset[str] = field(default_factory=frozenset)

    @property
    def receiver(self) -> Parameter | None:
        for param in self.parameters:
            if param.is_receiver:
                return param
        return None

    @property
    def analyzable(self) -> bool:
        """Declarations without complete span information are skipped."""
        if self.span is None:
            return False
        return all(param.span is not None for param in self.parameters)

    def order_key(self) -> tuple[str, int, int, str]:
        if self.span is None:
            return (self.path, 0, 0, self.qualname)
        return (self.path, self.span.start_line, self.span.start_col, self.qualname)


class MarkerKind(str, Enum):
    CONTEXT = "context"
    SCOPE_GUARD = "scope_guard"
    NONE = "none"

    @property
    def label(self) -> str:
        if self is MarkerKind.CONTEXT:
            return "context"
        if self is MarkerKind.SCOPE_GUARD:
            return "scope guard"
        return "ordinary"


class RuleKind(str, Enum):
    CONTEXT_NOT_FIRST = "context-not-first"
    SCOPE_GUARD_NOT_LAST = "scope-guard-not-last"
    SCOPE_GUARD_NOT_BY_VALUE = "scope-guard-not-by-value"

    @property
    def priority(self) -> int:
        return _RULE_PRIORITY[self]


_RULE_PRIORITY = {
    RuleKind.CONTEXT_NOT_FIRST: 0,
    RuleKind.SCOPE_GUARD_NOT_LAST: 1,
    RuleKind.SCOPE_GUARD_NOT_BY_VALUE: 2,
}

RULE_CODES: frozenset[str] = frozenset(rule.value for rule in RuleKind)


@dataclass(frozen=True)
class LogicalParameter:
    """A parameter together with its classification and logical position."""

    parameter: Parameter
    marker: MarkerKind
    position: int


@dataclass(frozen=True)
class Violation:
    declaration: Declaration
    parameter: Parameter
    rule: RuleKind
    marker_identity: str
    logical_position: int
    logical_count: int
    related: Parameter | None = None

    def sort_key(self) -> tuple[tuple[str, int, int, str], int, int]:
        return (self.declaration.order_key(), self.logical_position, self.rule.priority)


class Severity(str, Enum):
    WARNING = "warning"


@dataclass(frozen=True)
class TextEdit:
    span: Span
    replacement: str


@dataclass(frozen=True)
class Suggestion:
    message: str
    edits: tuple[TextEdit, ...] = ()


@dataclass(frozen=True)
class Diagnostic:
    rule: RuleKind
    severity: Severity
    message: str
    span: Span
    suggestion: Suggestion
    declaration: str
    related: tuple[Span, ...] = ()

    @property
    def code(self) -> str:
        return self.rule.value
