"""OpenAPI 3.0 exporter.

Builds a minimal OpenAPI document from a Collection. Collections imported from
OpenAPI keep their explicit request schemas; collections imported from Postman
get schemas inferred from their example bodies.
"""

import json
import re
from typing import Any

import yaml

from api_mock_studio.collection.base import Collection, Endpoint, Security
from api_mock_studio.schema.infer import infer

OPENAPI_VERSION = "3.0.0"

OAUTH2_PLACEHOLDER_URL = "https://example.com/oauth/authorize"

DEFAULT_SCHEME_NAMES = {
    "bearer": "bearerAuth",
    "basic": "basicAuth",
    "api-key": "apiKeyAuth",
    "oauth2": "oauth2Auth",
    "digest": "digestAuth",
}

PARAM_LOCATIONS = ("path", "query", "header")


def export_to_openapi(collection: Collection, fmt: str = "json") -> str:
    """Export a collection as an OpenAPI 3.0 JSON or YAML string."""
    return serialize(assemble(collection), fmt)


def assemble(collection: Collection) -> dict:
    """Build the OpenAPI document for a collection."""
    doc: dict[str, Any] = {
        "openapi": OPENAPI_VERSION,
        "info": _build_info(collection),
    }
    if collection.base_url:
        doc["servers"] = [{"url": collection.base_url}]

    endpoints = list(collection.all_endpoints())

    paths: dict[str, dict] = {}
    for endpoint in endpoints:
        method = (endpoint.method or "get").lower()
        paths.setdefault(endpoint.path, {})[method] = _build_operation(endpoint)
    doc["paths"] = paths

    schemes = _build_security_schemes(endpoints)
    if schemes:
        doc["components"] = {"securitySchemes": schemes}

    return doc


def serialize(doc: dict, fmt: str = "json") -> str:
    """Serialize a document: 2-space JSON, or non-wrapping alias-free YAML."""
    if fmt == "yaml":
        return yaml.dump(
            doc,
            Dumper=_NoAliasDumper,
            sort_keys=False,
            allow_unicode=True,
            width=float("inf"),
            default_flow_style=False,
        )
    return json.dumps(doc, indent=2, ensure_ascii=False)


class _NoAliasDumper(yaml.SafeDumper):
    def ignore_aliases(self, data):
        return True


def _build_info(collection: Collection) -> dict:
    info = {
        "title": collection.name or "API Collection",
        "version": collection.version or "1.0.0",
    }
    if collection.description:
        info["description"] = collection.description
    return info


def _build_operation(endpoint: Endpoint) -> dict:
    method = endpoint.method or "get"
    operation: dict[str, Any] = {"summary": endpoint.name or f"{method} {endpoint.path}"}

    if endpoint.description:
        operation["description"] = endpoint.description

    operation["operationId"] = endpoint.id or re.sub(r"[^a-zA-Z0-9]", "_", f"{method}_{endpoint.path}")

    parameters = _build_parameters(endpoint)
    if parameters:
        operation["parameters"] = parameters

    if endpoint.request_body is not None:
        operation["requestBody"] = _build_request_body(endpoint)

    requirement = _security_requirement(endpoint.security)
    if requirement:
        operation["security"] = [requirement]

    operation["responses"] = {"200": {"description": "Successful response"}}
    return operation


def _build_parameters(endpoint: Endpoint) -> list[dict]:
    result = []
    for location in PARAM_LOCATIONS:
        group = getattr(endpoint.parameters, location)
        for name, param in group.items():
            if param.required is None:
                # Path params are required unless explicitly marked otherwise
                required = location == "path"
            else:
                required = param.required
            result.append({
                "name": name,
                "in": location,
                "required": required,
                "description": param.description or "",
                "schema": {"type": param.type or "string"},
                "example": param.example if param.example is not None else "",
            })
    return result


def _build_request_body(endpoint: Endpoint) -> dict:
    body = endpoint.request_body
    content_type = body.content_type or "application/json"

    if body.schema_:
        media = {"schema": body.schema_}
    elif body.example not in (None, ""):
        parsed, ok = _parse_example(body.example)
        media = {"schema": infer(parsed) if ok else {"type": "object"}, "example": parsed}
    else:
        media = {"schema": {"type": "object"}}

    return {"required": body.required, "content": {content_type: media}}


def _parse_example(example: Any) -> tuple[Any, bool]:
    """Return (value, parsed_ok). Non-string examples are already parsed."""
    if not isinstance(example, str):
        return example, True
    try:
        return json.loads(example), True
    except ValueError:
        return example, False


def _scheme_name(security: Security) -> str:
    return security.scheme_name or DEFAULT_SCHEME_NAMES.get(security.type, "auth")


def _security_requirement(security: Security | None) -> dict | None:
    if security is None or not security.type or security.type == "none":
        return None
    return {_scheme_name(security): []}


def _map_security_scheme(security: Security) -> dict | None:
    if security.type == "bearer":
        return {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
    if security.type == "basic":
        return {"type": "http", "scheme": "basic"}
    if security.type == "api-key":
        return {
            "type": "apiKey",
            "name": security.config.get("keyName") or "X-API-Key",
            "in": security.config.get("location") or "header",
        }
    if security.type == "oauth2":
        return {
            "type": "oauth2",
            "flows": {"implicit": {"authorizationUrl": OAUTH2_PLACEHOLDER_URL, "scopes": {}}},
        }
    return None


def _build_security_schemes(endpoints: list[Endpoint]) -> dict:
    """Collect schemes by name; the first definition of a name wins."""
    schemes: dict[str, dict] = {}
    for endpoint in endpoints:
        if endpoint.security is None:
            continue
        scheme = _map_security_scheme(endpoint.security)
        if scheme is None:
            continue
        schemes.setdefault(_scheme_name(endpoint.security), scheme)
    return schemes
