"""Persisted mock server settings.

Settings live in a generic key-value store under ``SETTINGS_KEY``. Invalid
entries found on load are dropped rather than rejected, so a hand-edited or
stale settings file never prevents the server from starting.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SETTINGS_KEY = "mockServer"

DEFAULT_PORT = 3000
MIN_PORT, MAX_PORT = 1024, 65535
MIN_DELAY_MS, MAX_DELAY_MS = 0, 30000
MIN_STATUS, MAX_STATUS = 100, 599


class SettingsStoreError(Exception):
    """Raised when settings cannot be read from or written to the store."""


def endpoint_key(collection_id: str, endpoint_id: str) -> str:
    return f"{collection_id}_{endpoint_id}"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def valid_port(port: Any) -> bool:
    return _is_int(port) and MIN_PORT <= port <= MAX_PORT


def valid_delay(delay: Any) -> bool:
    return _is_int(delay) and MIN_DELAY_MS <= delay <= MAX_DELAY_MS


def valid_status(code: Any) -> bool:
    return _is_int(code) and MIN_STATUS <= code <= MAX_STATUS


class MockServerSettings(BaseModel):
    """Port, enabled collections and per-endpoint overrides."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    port: int = DEFAULT_PORT
    enabled_collections: tuple[str, ...] = Field(default=(), alias="enabledCollections")
    endpoint_delays: dict[str, int] = Field(default_factory=dict, alias="endpointDelays")
    custom_responses: dict[str, Any] = Field(default_factory=dict, alias="customResponses")
    custom_status_codes: dict[str, int] = Field(default_factory=dict, alias="customStatusCodes")

    @field_validator("port", mode="before")
    @classmethod
    def _sanitize_port(cls, value):
        return value if valid_port(value) else DEFAULT_PORT

    @field_validator("enabled_collections", mode="before")
    @classmethod
    def _sanitize_enabled(cls, value):
        if not isinstance(value, (list, tuple, set)):
            return ()
        result: list[str] = []
        for cid in value:
            if isinstance(cid, str) and cid.strip() and cid not in result:
                result.append(cid)
        return tuple(result)

    @field_validator("endpoint_delays", mode="before")
    @classmethod
    def _sanitize_delays(cls, value):
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(k, str) and valid_delay(v)}

    @field_validator("custom_status_codes", mode="before")
    @classmethod
    def _sanitize_status_codes(cls, value):
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(k, str) and valid_status(v)}

    @field_validator("custom_responses", mode="before")
    @classmethod
    def _sanitize_responses(cls, value):
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(k, str) and v is not None}

    def to_stored(self) -> dict:
        """Return the persisted (camelCase, JSON-ready) shape."""
        data = self.model_dump(by_alias=True)
        data["enabledCollections"] = list(self.enabled_collections)
        return data


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class JsonFileStore:
    """Key-value store backed by a single JSON file, written atomically."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SettingsStoreError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except SettingsStoreError:
            logger.warning("Overwriting unreadable settings file %s", self.path)
            data = {}
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise SettingsStoreError(f"Cannot write {self.path}: {e}") from e


def load_settings(store: KeyValueStore) -> MockServerSettings:
    """Load settings, falling back to (and persisting) defaults when missing or invalid."""
    try:
        data = store.get(SETTINGS_KEY)
    except SettingsStoreError:
        logger.exception("Failed to read mock server settings, using defaults")
        data = None

    if isinstance(data, dict):
        try:
            return MockServerSettings.model_validate(data)
        except ValidationError:
            logger.warning("Mock server settings are invalid, resetting to defaults")
    else:
        logger.info("No mock server settings found, initializing defaults")

    settings = MockServerSettings()
    try:
        save_settings(store, settings)
    except SettingsStoreError:
        logger.exception("Failed to persist default mock server settings")
    return settings


def save_settings(store: KeyValueStore, settings: MockServerSettings) -> None:
    try:
        store.set(SETTINGS_KEY, settings.to_stored())
    except SettingsStoreError:
        raise
    except (OSError, TypeError, ValueError) as e:
        raise SettingsStoreError(str(e)) from e
