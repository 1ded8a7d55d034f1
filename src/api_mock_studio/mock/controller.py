"""Administrative control surface for the mock server.

This is the layer a UI talks to. Every ``handle_*`` operation returns an
ActionResult instead of raising, and start/stop are serialized here so the
engine's lifecycle never runs concurrently with itself.
"""

import threading
from pathlib import Path
from typing import Any, Iterable

from api_mock_studio import config
from api_mock_studio.collection.base import Collection
from api_mock_studio.mock.engine import ActionResult, MockServerEngine
from api_mock_studio.mock.log import RequestLogEntry
from api_mock_studio.mock.settings import JsonFileStore, KeyValueStore, MockServerSettings


class MockServerController:
    def __init__(self, store: KeyValueStore, collections: Iterable[Collection] = (), host: str | None = None):
        self.engine = MockServerEngine(store, collections, host=host)
        self._lifecycle_lock = threading.Lock()

    @classmethod
    def from_settings_file(
        cls,
        collections: Iterable[Collection],
        settings_path: Path | None = None,
        host: str | None = None,
    ) -> "MockServerController":
        return cls(JsonFileStore(settings_path or config.SETTINGS_FILE), collections, host=host)

    def get_settings(self) -> MockServerSettings:
        return self.engine.settings

    def get_collections(self) -> list[Collection]:
        return list(self.engine.collections)

    def get_status(self) -> dict:
        return self.engine.status()

    def handle_start(self) -> ActionResult:
        with self._lifecycle_lock:
            return self.engine.start()

    def handle_stop(self) -> ActionResult:
        with self._lifecycle_lock:
            return self.engine.stop()

    def handle_set_collections(self, collections: Iterable[Collection]) -> ActionResult:
        return self.engine.set_collections(collections)

    def handle_reload_settings(self) -> ActionResult:
        return self.engine.reload_settings()

    def handle_update_port(self, port: Any) -> ActionResult:
        return self.engine.update_port(port)

    def handle_toggle_collection(self, collection_id: str) -> ActionResult:
        return self.engine.toggle_collection(collection_id)

    def handle_set_delay(self, collection_id: str, endpoint_id: str, delay_ms: Any) -> ActionResult:
        return self.engine.set_delay(collection_id, endpoint_id, delay_ms)

    def handle_set_custom_status_code(self, collection_id: str, endpoint_id: str, code: Any) -> ActionResult:
        return self.engine.set_custom_status_code(collection_id, endpoint_id, code)

    def handle_set_custom_response(self, collection_id: str, endpoint_id: str, body: Any) -> ActionResult:
        return self.engine.set_custom_response(collection_id, endpoint_id, body)

    def get_custom_response(self, collection_id: str, endpoint_id: str) -> Any:
        return self.engine.get_custom_response(collection_id, endpoint_id)

    def get_custom_status_code(self, collection_id: str, endpoint_id: str) -> int | None:
        return self.engine.get_custom_status_code(collection_id, endpoint_id)

    def get_request_logs(self, limit: int = 20) -> list[RequestLogEntry]:
        return self.engine.request_log.recent(limit)

    def clear_request_logs(self) -> ActionResult:
        self.engine.request_log.clear()
        return ActionResult(success=True)
