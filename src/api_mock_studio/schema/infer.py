"""Structural schema inference from example JSON values.

Used by the OpenAPI exporter for request bodies that carry an example but no
explicit schema.
"""

import math
from typing import Any

MAX_DEPTH = 64


def infer(value: Any, _depth: int = 0) -> dict:
    """Derive a schema descriptor from a JSON-decodable value.

    Total over any input: ``None`` maps to ``{"type": "object"}``, arrays are
    typed by their first element only, and anything unrecognised is a string.
    """
    if value is None or _depth >= MAX_DEPTH:
        return {"type": "object"}

    if isinstance(value, (list, tuple)):
        items = infer(value[0], _depth + 1) if value else {"type": "object"}
        return {"type": "array", "items": items}

    if isinstance(value, dict):
        return {
            "type": "object",
            "properties": {str(k): infer(v, _depth + 1) for k, v in value.items()},
        }

    # bool is a subclass of int
    if isinstance(value, bool):
        return {"type": "boolean"}

    if isinstance(value, int):
        return {"type": "integer"}

    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return {"type": "integer"}
        return {"type": "number"}

    return {"type": "string"}
