import json
from pathlib import Path

import yaml

from api_mock_studio.collection.base import Collection, Endpoint, Folder
from api_mock_studio.collection.loader import load_collections
from api_mock_studio.export.openapi import assemble, export_to_openapi, serialize

FIXTURES = Path(__file__).parent / "fixtures"


def _collection(*endpoints: Endpoint, **kwargs) -> Collection:
    return Collection(id="c1", endpoints=list(endpoints), **kwargs)


class TestInfoAndServers:
    def test_defaults(self):
        doc = assemble(Collection(id="c1"))
        assert doc["openapi"] == "3.0.0"
        assert doc["info"] == {"title": "API Collection", "version": "1.0.0"}
        assert "servers" not in doc
        assert "components" not in doc
        assert doc["paths"] == {}

    def test_name_version_description_and_server(self):
        doc = assemble(Collection(
            id="c1", name="Shop", version="2.1.0", description="Shop API", base_url="https://api.shop.test",
        ))
        assert doc["info"] == {"title": "Shop", "version": "2.1.0", "description": "Shop API"}
        assert doc["servers"] == [{"url": "https://api.shop.test"}]


class TestOperations:
    def test_summary_and_operation_id_defaults(self):
        doc = assemble(_collection(Endpoint(method="GET", path="/users/{id}")))
        op = doc["paths"]["/users/{id}"]["get"]
        assert op["summary"] == "GET /users/{id}"
        assert op["operationId"] == "GET__users__id_"
        assert op["responses"] == {"200": {"description": "Successful response"}}

    def test_missing_method_defaults_to_get(self):
        doc = assemble(_collection(Endpoint(id="e1", path="/ping")))
        assert list(doc["paths"]["/ping"]) == ["get"]

    def test_explicit_name_id_description(self):
        doc = assemble(_collection(Endpoint(
            id="e1", method="PUT", path="/x", name="Update", description="Updates x",
        )))
        op = doc["paths"]["/x"]["put"]
        assert op["summary"] == "Update"
        assert op["operationId"] == "e1"
        assert op["description"] == "Updates x"

    def test_methods_share_a_path(self):
        doc = assemble(_collection(
            Endpoint(id="a", method="GET", path="/items"),
            Endpoint(id="b", method="POST", path="/items"),
        ))
        assert set(doc["paths"]["/items"]) == {"get", "post"}

    def test_declared_responses_are_not_exported(self):
        doc = assemble(_collection(Endpoint(
            id="e1", method="GET", path="/x", responses={"404": {"description": "Missing"}},
        )))
        assert doc["paths"]["/x"]["get"]["responses"] == {"200": {"description": "Successful response"}}

    def test_folder_endpoints_are_exported(self):
        doc = assemble(Collection(
            id="c1", folders=[Folder(endpoints=[Endpoint(id="f", method="GET", path="/in-folder")])],
        ))
        assert "/in-folder" in doc["paths"]


class TestParameters:
    def test_required_defaults_by_location(self):
        doc = assemble(_collection(Endpoint(
            id="e1",
            method="GET",
            path="/users/{id}",
            parameters={
                "path": {"id": {"type": "integer"}},
                "query": {"q": {"description": "search"}},
                "header": {"X-Trace": {"example": "abc"}},
            },
        )))
        params = {p["name"]: p for p in doc["paths"]["/users/{id}"]["get"]["parameters"]}
        assert params["id"] == {
            "name": "id", "in": "path", "required": True, "description": "",
            "schema": {"type": "integer"}, "example": "",
        }
        assert params["q"]["required"] is False
        assert params["q"]["in"] == "query"
        assert params["X-Trace"]["required"] is False
        assert params["X-Trace"]["example"] == "abc"

    def test_explicit_required_overrides_default(self):
        doc = assemble(_collection(Endpoint(
            id="e1", method="GET", path="/x/{id}",
            parameters={"path": {"id": {"required": False}}, "query": {"q": {"required": True}}},
        )))
        params = {p["name"]: p for p in doc["paths"]["/x/{id}"]["get"]["parameters"]}
        assert params["id"]["required"] is False
        assert params["q"]["required"] is True

    def test_no_parameters_key_when_empty(self):
        doc = assemble(_collection(Endpoint(id="e1", method="GET", path="/x")))
        assert "parameters" not in doc["paths"]["/x"]["get"]


class TestRequestBody:
    def test_widgets_example_is_inferred(self):
        collection = load_collections(FIXTURES / "widgets.collection.json")[0]
        doc = assemble(collection)
        body = doc["paths"]["/widgets"]["post"]["requestBody"]
        media = body["content"]["application/json"]
        assert body["required"] is False
        assert media["schema"] == {"type": "object", "properties": {"name": {"type": "string"}}}
        assert media["example"] == {"name": "a"}

    def test_explicit_schema_is_passed_through(self):
        schema = {"type": "object", "properties": {"id": {"type": "integer"}}}
        doc = assemble(_collection(Endpoint(
            id="e1", method="POST", path="/x",
            request_body={"required": True, "contentType": "application/xml", "schema": schema, "example": "{}"},
        )))
        body = doc["paths"]["/x"]["post"]["requestBody"]
        assert body["required"] is True
        assert body["content"] == {"application/xml": {"schema": schema}}

    def test_no_schema_no_example(self):
        doc = assemble(_collection(Endpoint(id="e1", method="POST", path="/x", request_body={})))
        assert doc["paths"]["/x"]["post"]["requestBody"]["content"] == {
            "application/json": {"schema": {"type": "object"}},
        }

    def test_invalid_json_example_falls_back(self):
        doc = assemble(_collection(Endpoint(
            id="e1", method="POST", path="/x", request_body={"example": "{not json"},
        )))
        media = doc["paths"]["/x"]["post"]["requestBody"]["content"]["application/json"]
        assert media["schema"] == {"type": "object"}

    def test_parsed_example_is_used_directly(self):
        doc = assemble(_collection(Endpoint(
            id="e1", method="POST", path="/x", request_body={"example": [{"n": 1}]},
        )))
        media = doc["paths"]["/x"]["post"]["requestBody"]["content"]["application/json"]
        assert media["schema"] == {"type": "array", "items": {"type": "object", "properties": {"n": {"type": "integer"}}}}
        assert media["example"] == [{"n": 1}]

    def test_no_request_body_key_without_body(self):
        doc = assemble(_collection(Endpoint(id="e1", method="GET", path="/x")))
        assert "requestBody" not in doc["paths"]["/x"]["get"]


class TestSecurity:
    def test_scheme_mapping_and_requirements(self):
        doc = assemble(_collection(
            Endpoint(id="a", method="GET", path="/a", security={"type": "bearer"}),
            Endpoint(id="b", method="GET", path="/b", security={"type": "basic"}),
            Endpoint(id="c", method="GET", path="/c", security={"type": "api-key", "config": {"keyName": "X-Key", "location": "query"}}),
            Endpoint(id="d", method="GET", path="/d", security={"type": "oauth2"}),
        ))
        schemes = doc["components"]["securitySchemes"]
        assert schemes["bearerAuth"] == {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        assert schemes["basicAuth"] == {"type": "http", "scheme": "basic"}
        assert schemes["apiKeyAuth"] == {"type": "apiKey", "name": "X-Key", "in": "query"}
        assert schemes["oauth2Auth"]["type"] == "oauth2"
        assert schemes["oauth2Auth"]["flows"]["implicit"]["scopes"] == {}
        assert doc["paths"]["/a"]["get"]["security"] == [{"bearerAuth": []}]
        assert doc["paths"]["/c"]["get"]["security"] == [{"apiKeyAuth": []}]

    def test_api_key_defaults(self):
        doc = assemble(_collection(Endpoint(id="a", method="GET", path="/a", security={"type": "api-key"})))
        assert doc["components"]["securitySchemes"]["apiKeyAuth"] == {
            "type": "apiKey", "name": "X-API-Key", "in": "header",
        }

    def test_none_type_emits_nothing(self):
        doc = assemble(_collection(Endpoint(id="a", method="GET", path="/a", security={"type": "none"})))
        assert "security" not in doc["paths"]["/a"]["get"]
        assert "components" not in doc

    def test_unknown_type_has_requirement_but_no_scheme(self):
        doc = assemble(_collection(Endpoint(id="a", method="GET", path="/a", security={"type": "hawk"})))
        assert doc["paths"]["/a"]["get"]["security"] == [{"auth": []}]
        assert "components" not in doc

    def test_first_scheme_with_a_name_wins(self):
        doc = assemble(_collection(
            Endpoint(id="a", method="GET", path="/a", security={"type": "bearer", "schemeName": "shared"}),
            Endpoint(id="b", method="GET", path="/b", security={"type": "basic", "schemeName": "shared"}),
        ))
        assert doc["components"]["securitySchemes"] == {
            "shared": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
        }


class TestSerialize:
    def test_json_uses_two_space_indent(self):
        text = export_to_openapi(Collection(id="c1", name="X"), "json")
        assert text.startswith('{\n  "openapi": "3.0.0"')
        assert json.loads(text)["info"]["title"] == "X"

    def test_yaml_roundtrips_without_aliases(self):
        shared = {"type": "object", "properties": {"a": {"type": "string"}}}
        doc = assemble(_collection(
            Endpoint(id="a", method="POST", path="/a", request_body={"schema": shared}),
            Endpoint(id="b", method="POST", path="/b", request_body={"schema": shared}),
        ))
        text = serialize(doc, "yaml")
        assert "&id" not in text and "*id" not in text
        assert yaml.safe_load(text) == doc

    def test_yaml_does_not_wrap_long_strings(self):
        long_description = "word " * 60
        text = serialize({"description": long_description.strip()}, "yaml")
        assert len(text.strip().splitlines()) == 1

    def test_yaml_preserves_key_order(self):
        text = export_to_openapi(Collection(id="c1"), "yaml")
        assert text.splitlines()[0] == "openapi: 3.0.0"
