"""Bounded request log for served mock requests."""

import threading
import time
import uuid
from collections import deque

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CAPACITY = 100


class RequestLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = Field(default_factory=time.time)
    method: str
    path: str
    query: dict[str, str] = {}
    response_status: int = Field(alias="responseStatus")
    response_time_ms: float = Field(alias="responseTimeMs")
    matched_endpoint: dict | None = Field(default=None, alias="matchedEndpoint")


class RequestLog:
    """Ring buffer; once full, each append drops the oldest entry."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._entries: deque[RequestLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: RequestLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def recent(self, limit: int = 20) -> list[RequestLogEntry]:
        """Return up to ``limit`` entries, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:][::-1]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
