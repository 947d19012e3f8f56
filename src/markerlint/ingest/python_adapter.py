from __future__ import annotations

from pathlib import Path
from typing import Mapping

from markerlint.analysis.diagnostics import EditPlanner
from markerlint.config import AdapterConfig
from markerlint.ingest.adapter_contract import (
    LanguageAdapter,
    NormalizedIngestBundle,
    ParsedFileUnit,
    ParseFailureWitness,
)
from markerlint.ingest.python_ingest import (
    ingest_python_source,
    iter_python_paths,
    wrapper_modes,
)
from markerlint.refactor.engine import RefactorEngine


class PythonAdapter(LanguageAdapter):
    language_id = "python"
    file_extensions = (".py",)

    def discover_files(self, paths: list[Path], *, config: AdapterConfig) -> list[Path]:
        return iter_python_paths(paths, config=config)

    def parse_source(
        self, source: str, *, path: Path, config: AdapterConfig
    ) -> ParsedFileUnit:
        return ParsedFileUnit(
            path=path,
            declarations=ingest_python_source(source, path=path, config=config),
        )

    def _parse(
        self, paths: list[Path], *, config: AdapterConfig
    ) -> tuple[list[ParsedFileUnit], list[ParseFailureWitness], dict[str, str]]:
        parsed_units: list[ParsedFileUnit] = []
        failures: list[ParseFailureWitness] = []
        sources: dict[str, str] = {}
        for path in paths:
            try:
                source = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                failures.append(ParseFailureWitness(path=path, stage="read", error=str(exc)))
                continue
            try:
                unit = self.parse_source(source, path=path, config=config)
            except (SyntaxError, ValueError) as exc:
                failures.append(ParseFailureWitness(path=path, stage="parse", error=str(exc)))
                continue
            sources[str(path)] = source
            parsed_units.append(unit)
        return parsed_units, failures, sources

    def parse_files(
        self, paths: list[Path], *, config: AdapterConfig
    ) -> tuple[list[ParsedFileUnit], list[ParseFailureWitness]]:
        parsed_units, failures, _ = self._parse(paths, config=config)
        return parsed_units, failures

    def normalize(self, paths: list[Path], *, config: AdapterConfig) -> NormalizedIngestBundle:
        discovered_paths = self.discover_files(paths, config=config)
        parsed_units, failures, sources = self._parse(discovered_paths, config=config)
        return NormalizedIngestBundle(
            language_id=self.language_id,
            file_paths=tuple(discovered_paths),
            parsed_units=tuple(parsed_units),
            parse_failures=tuple(failures),
            sources=sources,
        )

    def edit_planner(
        self,
        *,
        config: AdapterConfig,
        sources: Mapping[str, str] | None = None,
    ) -> EditPlanner | None:
        return RefactorEngine(wrappers=wrapper_modes(config), sources=sources)
