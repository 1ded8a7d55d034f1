"""Postman Collection v2.1 importer.

Parses Postman exported JSON files into a Collection. Nested item folders are
flattened into the endpoint list and regrouped into folders by their first
path segment.
"""

import json
import re
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

from .base import Collection, Endpoint, EndpointParameters, Folder, ParamSpec, RequestBody, Security


def parse_postman(file_path: Path) -> Collection:
    """Parse a Postman Collection v2.1 file into a Collection."""
    text = file_path.read_text(encoding="utf-8")
    return postman_to_collection(json.loads(text), file_path.stem)


def postman_to_collection(data: dict, fallback_name: str = "API Collection") -> Collection:
    info = data.get("info") or {}
    endpoints: list[Endpoint] = []
    _parse_items(data.get("item", []), endpoints)

    folders: dict[str, list[Endpoint]] = {}
    for ep in endpoints:
        folders.setdefault(ep.path.lstrip("/").split("/")[0] or "root", []).append(ep)

    name = info.get("name") or fallback_name
    return Collection(
        id=info.get("_postman_id") or _sanitize_id(name),
        name=name,
        version=info.get("version") if isinstance(info.get("version"), str) else None,
        description=info.get("description") if isinstance(info.get("description"), str) else None,
        endpoints=endpoints,
        folders=[Folder(id=_sanitize_id(f"folder_{n}"), name=n, endpoints=eps) for n, eps in folders.items()],
    )


def _sanitize_id(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", value)


def _parse_items(items: list[dict], endpoints: list[Endpoint]) -> None:
    """Recursively parse items (supports folders)."""
    for item in items:
        if "item" in item:
            _parse_items(item["item"], endpoints)
        elif "request" in item:
            endpoints.append(_parse_request(item, len(endpoints)))


def _parse_request(item: dict, index: int) -> Endpoint:
    req = item["request"]
    if isinstance(req, str):
        req = {"url": req}
    method = (req.get("method") or "GET").upper()
    path, query, path_vars = _parse_url(req.get("url", {}))
    name = item.get("name") or "Unnamed Request"

    return Endpoint(
        id=f"{_sanitize_id(name)}_{index}",
        method=method,
        path=path,
        name=name,
        description=item.get("description") if isinstance(item.get("description"), str) else None,
        parameters=EndpointParameters(path=path_vars, query=query),
        request_body=_parse_body(req.get("body")),
        security=_parse_auth(req.get("auth")),
    )


def _parse_url(url: dict | str) -> tuple[str, dict[str, ParamSpec], dict[str, ParamSpec]]:
    query: dict[str, ParamSpec] = {}
    path_vars: dict[str, ParamSpec] = {}

    if isinstance(url, str):
        parts = urlsplit(url)
        for key, value in parse_qsl(parts.query):
            query[key] = ParamSpec(required=False, example=value)
        return parts.path or "/", query, path_vars

    if isinstance(url.get("path"), list):
        path = "/" + "/".join(url["path"])
    else:
        path = urlsplit(url.get("raw", "")).path or "/"

    for q in url.get("query", []):
        if q.get("key") and q.get("disabled") is not True:
            query[q["key"]] = ParamSpec(
                required=False,
                description=q.get("description", ""),
                example=q.get("value") or "",
            )

    for var in url.get("variable", []):
        if var.get("key"):
            path_vars[var["key"]] = ParamSpec(
                required=True,
                description=var.get("description", ""),
                example=var.get("value") or "",
            )
            path = path.replace(f":{var['key']}", f"{{{var['key']}}}")

    return path, query, path_vars


def _parse_body(body: dict | None) -> RequestBody | None:
    if not body:
        return None
    if body.get("mode") == "raw":
        language = (body.get("options") or {}).get("raw", {}).get("language", "json")
        content_type = "application/json" if language == "json" else "text/plain"
        return RequestBody(content_type=content_type, example=body.get("raw", ""))
    if body.get("mode") == "urlencoded":
        return RequestBody(content_type="application/x-www-form-urlencoded")
    if body.get("mode") == "formdata":
        return RequestBody(content_type="multipart/form-data")
    return None


def _parse_auth(auth: dict | None) -> Security | None:
    if not auth or not auth.get("type"):
        return None
    auth_type = auth["type"]
    if auth_type == "noauth":
        return Security(type="none")
    if auth_type == "apikey":
        values = {entry.get("key"): entry.get("value") for entry in auth.get("apikey", [])}
        return Security(
            type="api-key",
            config={"keyName": values.get("key") or "X-API-Key", "location": values.get("in") or "header"},
        )
    if auth_type in ("bearer", "basic", "oauth2", "digest"):
        return Security(type=auth_type)
    return None
