import socket

import pytest

from api_mock_studio.collection.base import Collection, Endpoint
from api_mock_studio.mock.settings import JsonFileStore


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "settings.json")


@pytest.fixture
def widgets():
    return Collection(
        id="c1",
        name="Widgets",
        endpoints=[
            Endpoint(id="e1", method="POST", path="/widgets", request_body={"example": '{"name":"a"}'}),
            Endpoint(
                id="e2",
                method="GET",
                path="/widgets/{id}",
                name="Get widget",
                responses={
                    "200": {
                        "description": "A widget",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "id": {"type": "integer", "example": 1},
                                        "name": {"type": "string"},
                                    },
                                },
                            },
                        },
                    },
                },
            ),
            Endpoint(id="e3", method="DELETE", path="/widgets/{id}"),
        ],
    )


@pytest.fixture
def gadgets():
    return Collection(
        id="c2",
        name="Gadgets",
        endpoints=[Endpoint(id="g1", method="GET", path="/gadgets")],
    )


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
