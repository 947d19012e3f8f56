"""Exception types raised by markerlint."""

from __future__ import annotations


class MarkerlintError(RuntimeError):
    """Base class for errors raised by markerlint itself."""


class ConfigError(MarkerlintError):
    """Raised when the marker configuration cannot be used for analysis."""


class EngineDefect(MarkerlintError):
    """An internal invariant of the engine was violated.

    This never describes a problem in the analyzed code. It means an adapter
    produced an inconsistent declaration or a rule evaluator reached a state
    it should not be able to reach. Passes collect these separately from
    user-facing diagnostics so they are never mistaken for (or hidden among)
    convention violations.
    """

    def __init__(self, reason: str, **env: object) -> None:
        super().__init__(reason)
        self.reason = reason
        self.env = dict(env)

    def describe(self) -> str:
        if not self.env:
            return self.reason
        details = ", ".join(f"{key}={self.env[key]!r}" for key in sorted(self.env))
        return f"{self.reason} ({details})"
