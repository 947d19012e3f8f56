"""markerlint package root."""

from markerlint.exceptions import ConfigError, EngineDefect, MarkerlintError
from markerlint.invariants import never

__all__ = ["__version__", "ConfigError", "EngineDefect", "MarkerlintError", "never"]

__version__ = "0.1.0"
