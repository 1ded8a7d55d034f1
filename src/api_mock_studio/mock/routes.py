"""Route table for the mock server.

The table is a pure projection of the enabled collections' endpoints. It is
immutable once built; the engine replaces it wholesale whenever the set of
enabled collections changes.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

from api_mock_studio.collection.base import Collection, Endpoint

_PARAM_SEGMENT = re.compile(r"^(?:\{([^{}/]+)\}|:([^/]+))$")


@dataclass(frozen=True)
class Route:
    collection: Collection
    endpoint: Endpoint
    method: str
    segments: tuple[str, ...]
    # index -> parameter name for placeholder segments
    params: dict[int, str] = field(default_factory=dict)

    @classmethod
    def compile(cls, collection: Collection, endpoint: Endpoint) -> "Route":
        segments = tuple(endpoint.path.split("/"))
        params = {}
        for i, segment in enumerate(segments):
            m = _PARAM_SEGMENT.match(segment)
            if m:
                params[i] = m.group(1) or m.group(2)
        return cls(
            collection=collection,
            endpoint=endpoint,
            method=(endpoint.method or "GET").upper(),
            segments=segments,
            params=params,
        )

    def match_path(self, parts: list[str]) -> dict[str, str] | None:
        if len(parts) != len(self.segments):
            return None
        bound: dict[str, str] = {}
        for i, (segment, part) in enumerate(zip(self.segments, parts)):
            name = self.params.get(i)
            if name is not None:
                if not part:
                    return None
                bound[name] = part
            elif segment != part:
                return None
        return bound


@dataclass(frozen=True)
class RouteMatch:
    collection: Collection
    endpoint: Endpoint
    path_params: dict[str, str]


class RouteTable:
    """Ordered routes; the first matching route wins."""

    def __init__(self, routes: Iterable[Route] = ()):
        self._routes = tuple(routes)

    @classmethod
    def build(cls, collections: Iterable[Collection], enabled_ids: Iterable[str]) -> "RouteTable":
        """Flatten endpoints of enabled collections, keeping collection then endpoint order."""
        enabled = set(enabled_ids)
        routes = []
        for collection in collections:
            if collection.id not in enabled:
                continue
            for endpoint in collection.all_endpoints():
                if not isinstance(endpoint.path, str):
                    continue
                routes.append(Route.compile(collection, endpoint))
        return cls(routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self):
        return iter(self._routes)

    def match(self, method: str, path: str) -> RouteMatch | None:
        method = method.upper()
        parts = path.split("/")
        for route in self._routes:
            if route.method != method:
                continue
            bound = route.match_path(parts)
            if bound is not None:
                return RouteMatch(route.collection, route.endpoint, bound)
        return None
