"""Load collections from disk in any supported format."""

import json
from pathlib import Path

import yaml
from pydantic import ValidationError

from .base import Collection
from .detect import detect_data_format
from .openapi import openapi_to_collection
from .postman import postman_to_collection


class CollectionLoadError(Exception):
    """Raised when a file cannot be turned into collections."""


def load_collections(file_path: Path, fmt: str = "auto") -> list[Collection]:
    """Load one or more collections from a native, OpenAPI or Postman file."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise CollectionLoadError(f"Cannot read {file_path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise CollectionLoadError(f"{file_path} is neither JSON nor YAML") from e

    if fmt == "auto":
        fmt = detect_data_format(data)

    try:
        if fmt == "openapi":
            return [openapi_to_collection(data, file_path.stem)]
        if fmt == "postman":
            return [postman_to_collection(data, file_path.stem)]
        if fmt == "native":
            items = data.get("collections", [data]) if isinstance(data, dict) else data
            return [Collection.model_validate(item) for item in items]
    except (ValidationError, AttributeError, TypeError, KeyError) as e:
        raise CollectionLoadError(f"Invalid {fmt} collection in {file_path}: {e}") from e

    raise CollectionLoadError(f"Unrecognized collection format in {file_path}")


def dump_collections(collections: list[Collection], file_path: Path) -> None:
    """Write collections as a native JSON file."""
    payload = {"collections": [c.model_dump(by_alias=True, exclude_none=True) for c in collections]}
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
