"""Auto-detect collection document format."""

import json
from pathlib import Path

import yaml


def detect_format(file_path: Path) -> str:
    """Detect the format of a collection or API documentation file.

    Returns: 'openapi', 'postman', 'native' or 'unknown'.
    """
    text = file_path.read_text(encoding="utf-8")

    # YAML is a superset of JSON, so this covers both
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        data = None

    # Some JSON (e.g. with tabs) is not valid YAML
    if data is None:
        try:
            data = json.loads(text)
        except ValueError:
            return "unknown"

    return detect_data_format(data)


def detect_data_format(data) -> str:
    if isinstance(data, list):
        return "native" if data and all(isinstance(c, dict) and "id" in c for c in data) else "unknown"
    if not isinstance(data, dict):
        return "unknown"
    if "openapi" in data or "swagger" in data:
        return "openapi"
    if "_postman_id" in (data.get("info") or {}) or "item" in data:
        return "postman"
    if "collections" in data or ("id" in data and ("endpoints" in data or "folders" in data)):
        return "native"
    return "unknown"
