"""JSON-compatible value types for rendered diagnostics and model documents.

Renderers and the declaration-model reader exchange plain JSON values; these
aliases keep those boundaries explicit instead of falling back to `Any`.
"""

from __future__ import annotations

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
