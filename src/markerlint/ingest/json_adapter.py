from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError

from markerlint.analysis.diagnostics import EditPlanner
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
from markerlint.ingest.adapter_contract import (
    LanguageAdapter,
    NormalizedIngestBundle,
    ParsedFileUnit,
    ParseFailureWitness,
)
from markerlint.order_contract import ordered_or_sorted
from markerlint.schema import (
    MODEL_SCHEMA_VERSION,
    DeclarationDTO,
    ModelDocumentDTO,
    SpanDTO,
    TypeDTO,
)


def type_from_dto(dto: TypeDTO) -> TypeRef:
    inner = type_from_dto(dto.inner) if dto.inner is not None else None
    args = tuple(type_from_dto(arg) for arg in dto.args)
    kind = TypeKind(dto.kind)
    if kind is TypeKind.WRAPPER and inner is None:
        # A wrapper around nothing carries no identity to match.
        return TypeRef.unknown()
    return TypeRef(
        kind=kind,
        path=dto.path.replace("::", "."),
        mode=PassingMode(dto.mode),
        inner=inner,
        args=args,
    )


def _span(path: str, dto: SpanDTO | None) -> Span | None:
    if dto is None:
        return None
    return Span(
        path=path,
        start_line=dto.start_line,
        start_col=dto.start_col,
        end_line=dto.end_line,
        end_col=dto.end_col,
    )


def declaration_from_dto(dto: DeclarationDTO, *, path: str) -> Declaration:
    parameters: list[Parameter] = []
    for index, param in enumerate(dto.parameters):
        type_ref = type_from_dto(param.type)
        parameters.append(
            Parameter(
                name=param.name,
                type=type_ref,
                passing_mode=passing_mode_of(type_ref),
                index=index,
                span=_span(path, param.span),
                is_receiver=param.is_receiver,
            )
        )
    return Declaration(
        name=dto.name,
        qualname=dto.qualname or dto.name,
        kind=DeclarationKind(dto.kind),
        parameters=tuple(parameters),
        span=_span(path, dto.span),
        path=path,
        generics=tuple(
            GenericParam(
                name=generic.name,
                bound=type_from_dto(generic.bound) if generic.bound is not None else None,
            )
            for generic in dto.generics
        ),
        expects_receiver=dto.expects_receiver,
        suppressed=frozenset(code for code in dto.suppressed if code in RULE_CODES),
    )


def load_model_document(raw: str) -> ModelDocumentDTO:
    """Validate a declaration-model document.

    Raises ValueError for malformed JSON, schema mismatches and unsupported
    schema versions.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    try:
        document = ModelDocumentDTO.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
    if document.schema_version != MODEL_SCHEMA_VERSION:
        raise ValueError(f"unsupported schema_version {document.schema_version}")
    return document


class JsonModelAdapter(LanguageAdapter):
    """Reads declaration models exported by another compiler front end."""

    language_id = "json-model"
    file_extensions = (".json",)

    def discover_files(self, paths: list[Path], *, config: AdapterConfig) -> list[Path]:
        out: list[Path] = []
        for path in paths:
            if path.is_dir():
                candidates = ordered_or_sorted(
                    path.rglob("*.json"), source="JsonModelAdapter.discover_files"
                )
                out.extend(
                    candidate
                    for candidate in candidates
                    if not config.is_ignored_path(candidate.relative_to(path))
                )
            elif path.suffix.lower() == ".json" and not config.is_ignored_path(path):
                out.append(path)
        return out

    def parse_files(
        self, paths: list[Path], *, config: AdapterConfig
    ) -> tuple[list[ParsedFileUnit], list[ParseFailureWitness]]:
        parsed_units: list[ParsedFileUnit] = []
        failures: list[ParseFailureWitness] = []
        for path in paths:
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                failures.append(ParseFailureWitness(path=path, stage="read", error=str(exc)))
                continue
            try:
                document = load_model_document(raw)
            except ValueError as exc:
                failures.append(ParseFailureWitness(path=path, stage="parse", error=str(exc)))
                continue
            source_path = document.path or str(path)
            parsed_units.append(
                ParsedFileUnit(
                    path=path,
                    declarations=tuple(
                        declaration_from_dto(declaration, path=source_path)
                        for declaration in document.declarations
                    ),
                )
            )
        return parsed_units, failures

    def normalize(self, paths: list[Path], *, config: AdapterConfig) -> NormalizedIngestBundle:
        discovered_paths = self.discover_files(paths, config=config)
        parsed_units, failures = self.parse_files(discovered_paths, config=config)
        return NormalizedIngestBundle(
            language_id=self.language_id,
            file_paths=tuple(discovered_paths),
            parsed_units=tuple(parsed_units),
            parse_failures=tuple(failures),
        )

    def edit_planner(
        self,
        *,
        config: AdapterConfig,
        sources: Mapping[str, str] | None = None,
    ) -> EditPlanner | None:
        # The exported model carries no source text to edit.
        return None
