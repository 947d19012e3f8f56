from __future__ import annotations

import os


def set_env(values: dict[str, str | None]) -> dict[str, str | None]:
    """Apply environment overrides and return the values they replaced."""
    previous = {key: os.environ.get(key) for key in values}
    _apply(values)
    return previous


def restore_env(previous: dict[str, str | None]) -> None:
    _apply(previous)


def _apply(values: dict[str, str | None]) -> None:
    for key, value in values.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
