"""Invariant markers for the analysis engine."""

from __future__ import annotations

from typing import NoReturn, TypeVar

from markerlint.exceptions import EngineDefect

T = TypeVar("T")


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path that a consistent declaration can never reach.

    The optional env payload is attached to the raised defect for reporting.
    """
    raise EngineDefect(reason or "unreachable engine state", **env)


def require(condition: bool, reason: str, **env: object) -> None:
    if not condition:
        never(reason, **env)


def require_not_none(value: T | None, *, reason: str = "", **env: object) -> T:
    if value is None:
        never(reason or "required value is None", **env)
    return value
