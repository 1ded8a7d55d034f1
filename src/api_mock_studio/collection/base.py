"""Unified data models for API collections.

Importers (OpenAPI, Postman, native files) convert their input into these
models. The export and mock paths only ever read them.
"""

from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ParamSpec(_CamelModel):
    """A single parameter definition within a parameter group."""

    type: str = "string"
    required: bool | None = None
    description: str = ""
    example: Any = None


class EndpointParameters(_CamelModel):
    """Parameters grouped by location, each a map of name -> ParamSpec."""

    path: dict[str, ParamSpec] = {}
    query: dict[str, ParamSpec] = {}
    header: dict[str, ParamSpec] = {}


class RequestBody(_CamelModel):
    required: bool = False
    content_type: str | None = Field(default=None, alias="contentType")
    schema_: dict | None = Field(default=None, alias="schema")
    example: Any = None  # usually a JSON string, sometimes an already parsed value


class Security(_CamelModel):
    type: str  # none / bearer / basic / api-key / oauth2 / digest
    scheme_name: str | None = Field(default=None, alias="schemeName")
    config: dict = {}


class Endpoint(_CamelModel):
    """A single HTTP operation of a collection."""

    id: str | None = None
    method: str | None = None  # GET / POST / PUT / DELETE / PATCH ...
    path: str  # /api/users/{id} or /api/users/:id
    name: str | None = None
    description: str | None = None
    parameters: EndpointParameters = Field(default_factory=EndpointParameters)
    request_body: RequestBody | None = Field(default=None, alias="requestBody")
    responses: dict = {}  # {status_code: {description, content: {media_type: {schema, example}}}}
    security: Security | None = None


class Folder(_CamelModel):
    id: str | None = None
    name: str | None = None
    endpoints: list[Endpoint] = []


class Collection(_CamelModel):
    """A named set of endpoints, optionally grouped into folders."""

    id: str
    name: str | None = None
    version: str | None = None
    base_url: str | None = Field(default=None, alias="baseUrl")
    description: str | None = None
    endpoints: list[Endpoint] = []
    folders: list[Folder] = []

    def all_endpoints(self) -> Iterator[Endpoint]:
        """Yield top-level endpoints, then folder endpoints, skipping repeated ids."""
        seen: set[str] = set()
        for endpoint in self.endpoints:
            if endpoint.id is not None:
                seen.add(endpoint.id)
            yield endpoint
        for folder in self.folders:
            for endpoint in folder.endpoints:
                if endpoint.id is not None:
                    if endpoint.id in seen:
                        continue
                    seen.add(endpoint.id)
                yield endpoint
