"""Example value synthesis from schema descriptors.

The mock server uses this to build a default response body when no custom
response is configured for an endpoint.
"""

import copy
from typing import Any

FALLBACK_RESPONSE = {"message": "Success", "data": {}}

MAX_DEPTH = 64

_TYPE_DEFAULTS = {
    "string": "",
    "number": 0,
    "integer": 0,
    "boolean": False,
}


def synthesize(schema: dict | None, explicit_example: Any = None) -> Any:
    """Produce a concrete example value.

    Precedence: ``explicit_example``, then the schema's own ``example``, then a
    type-driven default built recursively. Without any schema the generic
    fallback body is returned.
    """
    if explicit_example is not None:
        return copy.deepcopy(explicit_example)
    if not isinstance(schema, dict):
        return copy.deepcopy(FALLBACK_RESPONSE)
    return _value_for(schema, 0)


def _value_for(schema: Any, depth: int) -> Any:
    if not isinstance(schema, dict) or depth >= MAX_DEPTH:
        return None

    if schema.get("example") is not None:
        return copy.deepcopy(schema["example"])
    if "default" in schema:
        return copy.deepcopy(schema["default"])

    schema_type = schema.get("type")
    if schema_type is None and "properties" in schema:
        schema_type = "object"

    if schema_type == "object":
        properties = schema.get("properties")
        if not isinstance(properties, dict):
            return {}
        return {name: _value_for(prop, depth + 1) for name, prop in properties.items()}

    if schema_type == "array":
        if "items" not in schema:
            return []
        return [_value_for(schema["items"], depth + 1)]

    return _TYPE_DEFAULTS.get(schema_type)
