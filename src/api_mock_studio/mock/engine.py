"""Mock HTTP server engine.

Serves enabled collections over HTTP through a FastAPI app run by uvicorn on a
background thread. Routing goes through an immutable RouteTable that is
rebuilt and swapped whenever the set of enabled collections changes; per
endpoint overrides (delay, status code, response body) are looked up fresh on
every request.

Stopping drains gracefully: the listener stops accepting connections and
in-flight responses, including delayed ones, are allowed to complete.
"""

import asyncio
import copy
import errno
import json
import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

import uvicorn
from fastapi import FastAPI, Request, Response
from pydantic import BaseModel

from api_mock_studio import config
from api_mock_studio.collection.base import Collection, Endpoint
from api_mock_studio.mock.log import DEFAULT_CAPACITY, RequestLog, RequestLogEntry
from api_mock_studio.mock.routes import RouteMatch, RouteTable
from api_mock_studio.mock.settings import (
    MAX_DELAY_MS,
    MAX_PORT,
    MAX_STATUS,
    MIN_DELAY_MS,
    MIN_PORT,
    MIN_STATUS,
    KeyValueStore,
    MockServerSettings,
    SettingsStoreError,
    endpoint_key,
    load_settings,
    save_settings,
    valid_delay,
    valid_port,
    valid_status,
)
from api_mock_studio.schema.synthesize import FALLBACK_RESPONSE, synthesize

logger = logging.getLogger(__name__)

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ", ".join(HTTP_METHODS),
    "Access-Control-Allow-Headers": "*",
}


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ResponseKind(str, Enum):
    OVERRIDE = "override"
    SYNTHESIZED = "synthesized"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


class ActionResult(BaseModel):
    """Outcome of an administrative operation, surfaced to the user as-is."""

    success: bool
    message: str | None = None
    port: int | None = None


@dataclass
class MockResponse:
    status_code: int
    body: Any
    kind: ResponseKind
    match: RouteMatch | None = None
    headers: dict = field(default_factory=dict)


def default_status_for(method: str | None) -> int:
    method = (method or "GET").upper()
    if method == "POST":
        return 201
    if method == "DELETE":
        return 204
    return 200


def success_media(endpoint: Endpoint) -> tuple[dict | None, Any] | None:
    """Find (schema, example) of the endpoint's success response.

    Looks at 200 first, then the remaining 2xx codes in order, preferring the
    application/json media type.
    """
    responses = {str(code): resp for code, resp in (endpoint.responses or {}).items()}
    codes = ["200"] + sorted(c for c in responses if c.startswith("2") and c != "200")
    for code in codes:
        response = responses.get(code)
        if not isinstance(response, dict):
            continue
        content = response.get("content")
        if not isinstance(content, dict) or not content:
            continue
        media_types = ["application/json"] + [m for m in content if m != "application/json"]
        for media_type in media_types:
            media = content.get(media_type)
            if not isinstance(media, dict):
                continue
            schema = media.get("schema") if isinstance(media.get("schema"), dict) else None
            example = media.get("example")
            if schema is not None or example is not None:
                return schema, example
    return None


def override_key(match: RouteMatch) -> str | None:
    """Settings key for a matched endpoint; endpoints without an id take no overrides."""
    if not match.endpoint.id:
        return None
    return endpoint_key(match.collection.id, match.endpoint.id)


def resolve_response(match: RouteMatch, settings: MockServerSettings) -> MockResponse:
    """Decide status and body for a matched route: override, synthesized or fallback.

    An informational (1xx) override cannot be a final HTTP response, so the
    endpoint's default status is sent in its place.
    """
    key = override_key(match)
    default_status = default_status_for(match.endpoint.method)

    status = settings.custom_status_codes.get(key, default_status) if key else default_status
    if status < 200:
        logger.warning(
            "Status %d cannot be sent as a final response for %s %s, sending %d",
            status, match.endpoint.method, match.endpoint.path, default_status,
        )
        status = default_status

    if key and key in settings.custom_responses:
        body = copy.deepcopy(settings.custom_responses[key])
        return MockResponse(status, body, ResponseKind.OVERRIDE, match)

    media = success_media(match.endpoint)
    if media is None:
        return MockResponse(status, copy.deepcopy(FALLBACK_RESPONSE), ResponseKind.FALLBACK, match)

    schema, example = media
    return MockResponse(status, synthesize(schema, example), ResponseKind.SYNTHESIZED, match)


class MockServerEngine:
    """Owns the listener lifecycle, the route table and the settings snapshot."""

    def __init__(
        self,
        store: KeyValueStore,
        collections: Iterable[Collection] = (),
        host: str | None = None,
        log_capacity: int = DEFAULT_CAPACITY,
    ):
        self.store = store
        self.host = host or config.HOST
        self.request_log = RequestLog(log_capacity)
        self.state = ServerState.STOPPED
        self.port: int | None = None

        self._lock = threading.RLock()
        self._collections: tuple[Collection, ...] = tuple(collections)
        self.settings: MockServerSettings = load_settings(store)
        self.routes = RouteTable.build(self._collections, self.settings.enabled_collections)

        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

        self.app = self._create_app()

    @property
    def collections(self) -> tuple[Collection, ...]:
        return self._collections

    @property
    def running(self) -> bool:
        return self.state is ServerState.RUNNING

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> ActionResult:
        with self._lock:
            if self.state is ServerState.RUNNING:
                return ActionResult(success=True, message=f"Server already running on port {self.port}", port=self.port)
            if self.state is not ServerState.STOPPED:
                return ActionResult(success=False, message=f"Server is {self.state.value}")

            port = self.settings.port
            self.state = ServerState.STARTING
            try:
                sock = self._bind(port)
            except OSError as e:
                self.state = ServerState.STOPPED
                if e.errno == errno.EADDRINUSE:
                    message = f"Port {port} is already in use"
                else:
                    message = e.strerror or str(e)
                logger.warning("Mock server failed to start: %s", message)
                return ActionResult(success=False, message=message)

            self.routes = RouteTable.build(self._collections, self.settings.enabled_collections)
            if not len(self.routes):
                logger.warning("Mock server starting with no endpoints; enable a collection to serve routes")

            server = uvicorn.Server(
                uvicorn.Config(
                    self.app,
                    log_config=None,
                    access_log=False,
                    lifespan="off",
                    timeout_graceful_shutdown=config.DRAIN_TIMEOUT,
                )
            )
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                name=f"mock-server-{port}",
                daemon=True,
            )
            thread.start()

            deadline = time.monotonic() + config.STARTUP_TIMEOUT
            while not server.started:
                if not thread.is_alive() or time.monotonic() > deadline:
                    server.should_exit = True
                    thread.join(timeout=config.STARTUP_TIMEOUT)
                    sock.close()
                    self.state = ServerState.STOPPED
                    logger.error("Mock server did not become ready on port %d", port)
                    return ActionResult(success=False, message="Failed to start server")
                time.sleep(0.01)

            self._server, self._thread = server, thread
            self.port = port
            self.state = ServerState.RUNNING
            logger.info("Mock server started on %s:%d with %d routes", self.host, port, len(self.routes))
            return ActionResult(success=True, message=f"Server started on port {port}", port=port)

    def stop(self) -> ActionResult:
        with self._lock:
            if self.state is ServerState.STOPPED:
                return ActionResult(success=True, message="Server is not running")
            if self.state is ServerState.STOPPING:
                return ActionResult(success=False, message="Server is already stopping")
            self.state = ServerState.STOPPING
            server, thread = self._server, self._thread

        # In-flight requests never take the lock, so draining outside it is safe.
        server.should_exit = True
        thread.join()

        with self._lock:
            self._server = None
            self._thread = None
            self.port = None
            self.state = ServerState.STOPPED
        logger.info("Mock server stopped")
        return ActionResult(success=True, message="Server stopped successfully")

    def _bind(self, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, port))
            sock.listen(128)
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        return sock

    def status(self) -> dict:
        return {
            "running": self.running,
            "port": self.port if self.running else self.settings.port,
            "requestCount": len(self.request_log),
        }

    # -- request handling ----------------------------------------------------

    async def handle_request(self, method: str, path: str, query: dict | None = None) -> MockResponse:
        started = time.perf_counter()
        match = self.routes.match(method, path)

        if match is None:
            response = MockResponse(
                404,
                {"error": "Endpoint not found", "path": path, "method": method},
                ResponseKind.NOT_FOUND,
            )
        else:
            key = override_key(match)
            delay_ms = self.settings.endpoint_delays.get(key, 0) if key else 0
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
            response = resolve_response(match, self.settings)

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.request_log.append(
            RequestLogEntry(
                method=method,
                path=path,
                query=query or {},
                response_status=response.status_code,
                response_time_ms=round(elapsed_ms, 3),
                matched_endpoint=_describe_match(match),
            )
        )
        logger.debug("%s %s -> %d (%s, %.1f ms)", method, path, response.status_code, response.kind.value, elapsed_ms)
        return response

    def _create_app(self) -> FastAPI:
        app = FastAPI(title="api-mock-studio", docs_url=None, redoc_url=None, openapi_url=None)

        async def dispatch(request: Request) -> Response:
            if request.method == "OPTIONS":
                return Response(status_code=204, headers=CORS_HEADERS)
            try:
                result = await self.handle_request(request.method, request.url.path, dict(request.query_params))
            except Exception:
                logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
                return Response(
                    content=json.dumps({"error": "Internal server error"}),
                    status_code=500,
                    media_type="application/json",
                    headers=CORS_HEADERS,
                )
            return _to_http(result)

        # No method filter: every verb reaches the route table.
        app.add_route("/{full_path:path}", dispatch, methods=None, include_in_schema=False)
        return app

    # -- settings mutation ---------------------------------------------------

    def _commit(self, settings: MockServerSettings, rebuild: bool = False) -> ActionResult | None:
        """Persist and swap in new settings; caller holds the lock."""
        try:
            save_settings(self.store, settings)
        except SettingsStoreError as e:
            logger.error("Failed to save mock server settings: %s", e)
            return ActionResult(success=False, message=f"Failed to save settings: {e}")
        if rebuild:
            self.routes = RouteTable.build(self._collections, settings.enabled_collections)
        self.settings = settings
        return None

    def toggle_collection(self, collection_id: str) -> ActionResult:
        with self._lock:
            enabled = list(self.settings.enabled_collections)
            if collection_id in enabled:
                enabled.remove(collection_id)
                action = "disabled"
            else:
                enabled.append(collection_id)
                action = "enabled"
            failure = self._commit(
                self.settings.model_copy(update={"enabled_collections": tuple(enabled)}),
                rebuild=True,
            )
            if failure:
                return failure
            logger.info("Collection %s %s for mocking (%d routes)", collection_id, action, len(self.routes))
            return ActionResult(success=True, message=f"Collection {action}")

    def set_collections(self, collections: Iterable[Collection]) -> ActionResult:
        """Replace the served collection list and rebuild routes."""
        with self._lock:
            self._collections = tuple(collections)
            self.routes = RouteTable.build(self._collections, self.settings.enabled_collections)
        return ActionResult(success=True, message=f"{len(self._collections)} collections loaded")

    def reload_settings(self) -> ActionResult:
        with self._lock:
            self.settings = load_settings(self.store)
            self.routes = RouteTable.build(self._collections, self.settings.enabled_collections)
        return ActionResult(success=True, message="Settings reloaded successfully")

    def update_port(self, port: Any) -> ActionResult:
        with self._lock:
            if self.state is not ServerState.STOPPED:
                return ActionResult(success=False, message="Stop the server before changing the port")
            if not valid_port(port):
                return ActionResult(success=False, message=f"Port must be between {MIN_PORT} and {MAX_PORT}")
            failure = self._commit(self.settings.model_copy(update={"port": port}))
            return failure or ActionResult(success=True, message=f"Port set to {port}", port=port)

    def set_delay(self, collection_id: str, endpoint_id: str, delay_ms: Any) -> ActionResult:
        if delay_ms is not None and not valid_delay(delay_ms):
            return ActionResult(
                success=False,
                message=f"Delay must be between {MIN_DELAY_MS} and {MAX_DELAY_MS} milliseconds",
            )
        key = endpoint_key(collection_id, endpoint_id)
        with self._lock:
            delays = dict(self.settings.endpoint_delays)
            if not delay_ms:
                delays.pop(key, None)
            else:
                delays[key] = delay_ms
            failure = self._commit(self.settings.model_copy(update={"endpoint_delays": delays}))
            return failure or ActionResult(success=True)

    def set_custom_status_code(self, collection_id: str, endpoint_id: str, code: Any) -> ActionResult:
        if code is not None and not valid_status(code):
            return ActionResult(
                success=False,
                message=f"Status code must be between {MIN_STATUS} and {MAX_STATUS}",
            )
        key = endpoint_key(collection_id, endpoint_id)
        with self._lock:
            codes = dict(self.settings.custom_status_codes)
            if code is None:
                codes.pop(key, None)
            else:
                codes[key] = code
            failure = self._commit(self.settings.model_copy(update={"custom_status_codes": codes}))
            return failure or ActionResult(success=True)

    def set_custom_response(self, collection_id: str, endpoint_id: str, body: Any) -> ActionResult:
        if body is not None:
            try:
                json.dumps(body, allow_nan=False)
            except (TypeError, ValueError) as e:
                return ActionResult(success=False, message=f"Response body is not valid JSON: {e}")
        key = endpoint_key(collection_id, endpoint_id)
        with self._lock:
            responses = dict(self.settings.custom_responses)
            if body is None:
                responses.pop(key, None)
            else:
                responses[key] = copy.deepcopy(body)
            failure = self._commit(self.settings.model_copy(update={"custom_responses": responses}))
            return failure or ActionResult(success=True)

    def get_custom_response(self, collection_id: str, endpoint_id: str) -> Any:
        value = self.settings.custom_responses.get(endpoint_key(collection_id, endpoint_id))
        return copy.deepcopy(value)

    def get_custom_status_code(self, collection_id: str, endpoint_id: str) -> int | None:
        return self.settings.custom_status_codes.get(endpoint_key(collection_id, endpoint_id))


def _describe_match(match: RouteMatch | None) -> dict | None:
    if match is None:
        return None
    return {
        "collectionId": match.collection.id,
        "collectionName": match.collection.name,
        "endpointId": match.endpoint.id,
        "endpointName": match.endpoint.name,
    }


def _to_http(result: MockResponse) -> Response:
    headers = {**CORS_HEADERS, **result.headers}
    if result.status_code in (204, 304):
        return Response(status_code=result.status_code, headers=headers)
    return Response(
        content=json.dumps(result.body, indent=2),
        status_code=result.status_code,
        media_type="application/json",
        headers=headers,
    )
