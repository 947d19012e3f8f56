from markerlint.ingest.adapter_contract import (
    LanguageAdapter,
    NormalizedIngestBundle,
    ParsedFileUnit,
    ParseFailureWitness,
)
from .python_ingest import ingest_python_source, iter_python_paths


def resolve_adapter(*, paths, language_id=None, default_language_id="python"):
    from markerlint.ingest.registry import resolve_adapter as _resolve_adapter

    return _resolve_adapter(
        paths=paths,
        language_id=language_id,
        default_language_id=default_language_id,
    )


__all__ = [
    "LanguageAdapter",
    "NormalizedIngestBundle",
    "ParsedFileUnit",
    "ParseFailureWitness",
    "ingest_python_source",
    "iter_python_paths",
    "resolve_adapter",
]
