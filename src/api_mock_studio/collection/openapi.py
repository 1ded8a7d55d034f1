"""OpenAPI / Swagger document importer.

Converts OpenAPI 3.x and Swagger 2.0 documents into a Collection. Endpoints are
grouped into folders by their first path segment; ``$ref`` pointers are kept
as-is.
"""

import re
from pathlib import Path

import yaml

from .base import Collection, Endpoint, EndpointParameters, Folder, ParamSpec, RequestBody, Security

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


def parse_openapi(file_path: Path) -> Collection:
    """Parse an OpenAPI/Swagger file into a Collection."""
    text = file_path.read_text(encoding="utf-8")
    doc = yaml.safe_load(text)
    return openapi_to_collection(doc, file_path.stem)


def openapi_to_collection(doc: dict, fallback_name: str = "API Collection") -> Collection:
    info = doc.get("info") or {}
    folders: dict[str, list[Endpoint]] = {}

    for path, methods in (doc.get("paths") or {}).items():
        if not isinstance(methods, dict):
            continue
        for method, operation in methods.items():
            if method.upper() not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            endpoint = Endpoint(
                id=_sanitize_id(f"{method.upper()}_{path}"),
                method=method.upper(),
                path=path,
                name=operation.get("summary") or operation.get("operationId") or f"{method.upper()} {path}",
                description=operation.get("description", ""),
                parameters=_parse_parameters((methods.get("parameters") or []) + (operation.get("parameters") or [])),
                request_body=_parse_request_body(operation.get("requestBody")),
                responses=_parse_responses(operation.get("responses", {})),
                security=_parse_security(operation.get("security", doc.get("security")), doc),
            )
            folders.setdefault(_base_segment(path), []).append(endpoint)

    return Collection(
        id=_sanitize_id(info.get("title") or fallback_name),
        name=info.get("title") or fallback_name,
        version=str(info.get("version") or "1.0.0"),
        description=info.get("description"),
        base_url=_base_url(doc),
        endpoints=[ep for eps in folders.values() for ep in eps],
        folders=[
            Folder(id=_sanitize_id(f"folder_{name}"), name=name, endpoints=eps)
            for name, eps in folders.items()
        ],
    )


def _sanitize_id(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", value)


def _base_segment(path: str) -> str:
    return path.lstrip("/").split("/")[0] or "root"


def _base_url(doc: dict) -> str | None:
    servers = doc.get("servers")
    if servers and isinstance(servers[0], dict):
        return servers[0].get("url")
    # Swagger 2.0
    if "host" in doc:
        scheme = (doc.get("schemes") or ["https"])[0]
        return f"{scheme}://{doc['host']}{doc.get('basePath', '')}"
    return None


def _parse_parameters(params: list[dict]) -> EndpointParameters:
    groups: dict[str, dict[str, ParamSpec]] = {"path": {}, "query": {}, "header": {}}
    for p in params:
        if not isinstance(p, dict) or "name" not in p:
            continue
        location = p.get("in", "query")
        if location not in groups:
            continue
        schema = p.get("schema") or {}
        groups[location][p["name"]] = ParamSpec(
            type=schema.get("type") or p.get("type") or "string",
            required=True if location == "path" else p.get("required", False),
            description=p.get("description", ""),
            example=p.get("example", schema.get("example")),
        )
    return EndpointParameters(**groups)


def _parse_request_body(body: dict | None) -> RequestBody | None:
    if not body:
        return None
    content = body.get("content") or {}
    if not content:
        return None
    content_type = "application/json" if "application/json" in content else next(iter(content))
    media = content[content_type] or {}
    return RequestBody(
        required=body.get("required", False),
        content_type=content_type,
        schema_=media.get("schema"),
        example=media.get("example"),
    )


def _parse_responses(responses: dict) -> dict:
    result = {}
    for status_code, resp in responses.items():
        if not isinstance(resp, dict):
            continue
        entry = {"description": resp.get("description", "")}
        if resp.get("content"):
            entry["content"] = resp["content"]
        result[str(status_code)] = entry
    return result


def _parse_security(requirements: list | None, doc: dict) -> Security | None:
    """Map the first security requirement onto an internal Security entry."""
    if not requirements or not isinstance(requirements[0], dict) or not requirements[0]:
        return None
    scheme_name = next(iter(requirements[0]))
    schemes = (doc.get("components") or {}).get("securitySchemes") or doc.get("securityDefinitions") or {}
    scheme = schemes.get(scheme_name) or {}

    scheme_type = scheme.get("type")
    if scheme_type == "http":
        auth_type = "basic" if scheme.get("scheme") == "basic" else "bearer"
        return Security(type=auth_type, scheme_name=scheme_name)
    if scheme_type == "apiKey":
        return Security(
            type="api-key",
            scheme_name=scheme_name,
            config={"keyName": scheme.get("name", "X-API-Key"), "location": scheme.get("in", "header")},
        )
    if scheme_type == "oauth2":
        return Security(type="oauth2", scheme_name=scheme_name)
    if scheme_type == "basic":
        return Security(type="basic", scheme_name=scheme_name)
    return None
