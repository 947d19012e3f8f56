from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Protocol, runtime_checkable

from markerlint.analysis.diagnostics import EditPlanner
from markerlint.analysis.model import Declaration
from markerlint.config import AdapterConfig


@dataclass(frozen=True)
class ParseFailureWitness:
    path: Path
    stage: str
    error: str

    def __str__(self) -> str:
        return f"{self.path}: {self.stage} failed: {self.error}"


@dataclass(frozen=True)
class ParsedFileUnit:
    path: Path
    declarations: tuple[Declaration, ...]


@dataclass(frozen=True)
class NormalizedIngestBundle:
    language_id: str
    file_paths: tuple[Path, ...]
    parsed_units: tuple[ParsedFileUnit, ...]
    parse_failures: tuple[ParseFailureWitness, ...] = ()
    # Source text by path string, for adapters that plan edits against it.
    sources: Mapping[str, str] = field(default_factory=dict)

    def iter_declarations(self) -> Iterator[Declaration]:
        for unit in self.parsed_units:
            yield from unit.declarations


@runtime_checkable
class LanguageAdapter(Protocol):
    language_id: str
    file_extensions: tuple[str, ...]

    def discover_files(
        self,
        paths: list[Path],
        *,
        config: AdapterConfig,
    ) -> list[Path]: ...

    def parse_files(
        self,
        paths: list[Path],
        *,
        config: AdapterConfig,
    ) -> tuple[list[ParsedFileUnit], list[ParseFailureWitness]]: ...

    def normalize(
        self,
        paths: list[Path],
        *,
        config: AdapterConfig,
    ) -> NormalizedIngestBundle: ...

    def edit_planner(
        self,
        *,
        config: AdapterConfig,
        sources: Mapping[str, str] | None = None,
    ) -> EditPlanner | None: ...
