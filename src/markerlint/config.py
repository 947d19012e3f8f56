from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from markerlint.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "markerlint.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

DEFAULT_REF_WRAPPERS = ("Ref",)
DEFAULT_REF_MUT_WRAPPERS = ("RefMut",)
DEFAULT_POINTER_WRAPPERS = ("Ptr", "Box")


@dataclass(frozen=True)
class MarkerConfig:
    """The two nominal type identities the conventions are enforced for.

    Identities are either bare names (``Context``) or dotted paths
    (``app.runtime.Context``). A bare name matches any qualified path ending in
    that name; a dotted identity matches only paths ending in all its segments.
    """

    context: str
    scope_guard: str

    def __post_init__(self) -> None:
        context = _normalize_identity(self.context)
        scope_guard = _normalize_identity(self.scope_guard)
        if not context:
            raise ConfigError("context marker identity must not be empty")
        if not scope_guard:
            raise ConfigError("scope guard marker identity must not be empty")
        if context == scope_guard:
            raise ConfigError(
                f"context and scope guard markers must differ (both {context!r})"
            )
        object.__setattr__(self, "context", context)
        object.__setattr__(self, "scope_guard", scope_guard)


@dataclass(frozen=True)
class AdapterConfig:
    """Host adapter settings: which generic wrappers denote non-value passing."""

    ref_wrappers: tuple[str, ...] = DEFAULT_REF_WRAPPERS
    ref_mut_wrappers: tuple[str, ...] = DEFAULT_REF_MUT_WRAPPERS
    pointer_wrappers: tuple[str, ...] = DEFAULT_POINTER_WRAPPERS
    exclude_dirs: frozenset[str] = field(default_factory=frozenset)

    def is_ignored_path(self, path: Path) -> bool:
        return bool(self.exclude_dirs & set(path.parts))


def _normalize_identity(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().replace("::", ".")


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def marker_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "markers")


def adapter_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "adapter")


def analysis_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "analysis")


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_int(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return default


def marker_config_from_table(section: TomlTable) -> MarkerConfig | None:
    """Build a marker config from a ``[markers]`` table.

    Returns None when either identity is missing; raises ConfigError when both
    are present but unusable.
    """
    context = _normalize_identity(section.get("context"))
    scope_guard = _normalize_identity(section.get("scope_guard"))
    if not context or not scope_guard:
        return None
    return MarkerConfig(context=context, scope_guard=scope_guard)


def adapter_config_from_table(
    section: TomlTable, *, exclude: TomlValue = None
) -> AdapterConfig:
    ref = _normalize_name_list(section.get("ref")) or list(DEFAULT_REF_WRAPPERS)
    ref_mut = _normalize_name_list(section.get("ref_mut")) or list(
        DEFAULT_REF_MUT_WRAPPERS
    )
    pointer = _normalize_name_list(section.get("pointer")) or list(
        DEFAULT_POINTER_WRAPPERS
    )
    overlap = (set(ref) & set(ref_mut)) | (set(ref) & set(pointer)) | (
        set(ref_mut) & set(pointer)
    )
    if overlap:
        raise ConfigError(
            "wrapper names map to more than one passing mode: "
            + ", ".join(sorted(overlap))
        )
    return AdapterConfig(
        ref_wrappers=tuple(ref),
        ref_mut_wrappers=tuple(ref_mut),
        pointer_wrappers=tuple(pointer),
        exclude_dirs=frozenset(_normalize_name_list(exclude)),
    )


def analysis_jobs(section: TomlTable, default: int = 1) -> int:
    return max(_as_int(section.get("jobs"), default), 1)


def analysis_exclude(section: TomlTable) -> list[str]:
    return _normalize_name_list(section.get("exclude"))


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged
