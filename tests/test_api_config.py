import json

import httpx

from app.config import Settings


def test_list_transformers_shows_defaults(client) -> None:
    response = client.get("/api/config/transformers")

    assert response.status_code == 200
    payload = response.json()
    assert payload["totalTransformers"] == 4
    assert payload["transformers"][0]["pattern"] == "*/exec"
    assert payload["globalTransform"] is None
    assert "Bearer" not in response.text


def test_set_and_remove_endpoint_transformer(client) -> None:
    created = client.post(
        "/api/config/endpoint-transformer",
        json={
            "endpointPattern": "*/v2/run*",
            "method": "PUT",
            "headers": {"X-Api": "v2"},
            "transform": {"format": "statements", "static_fields": {"dryRun": False}},
            "description": "v2 runner",
        },
    )

    assert created.status_code == 200
    assert created.json()["totalTransformers"] == 5
    assert created.json()["transformer"]["method"] == "PUT"

    removed = client.delete("/api/config/endpoint-transformer", params={"pattern": "*/v2/run*"})
    missing = client.delete("/api/config/endpoint-transformer", params={"pattern": "*/v2/run*"})

    assert removed.status_code == 200
    assert removed.json()["totalTransformers"] == 4
    assert missing.status_code == 404


def test_executable_transformer_source_is_rejected(client) -> None:
    response = client.post(
        "/api/config/endpoint-transformer",
        json={"endpointPattern": "*/exec", "transformerCode": "return {query: sql}"},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_unknown_transform_format_is_rejected(client) -> None:
    response = client.post(
        "/api/config/transformer", json={"transform": {"format": "template"}}
    )

    assert response.status_code == 400


def test_registered_transformer_is_used_for_forwarding(make_client) -> None:
    client, transport = make_client(
        Settings(DESTINATION_URL="http://runner/v2/run", ENDPOINT_TRANSFORMERS=[]),
        lambda request: httpx.Response(200, json={}),
    )
    client.post(
        "/api/config/endpoint-transformer",
        json={
            "endpointPattern": "*/v2/run",
            "method": "PUT",
            "headers": {"X-Api": "v2"},
            "transform": {"format": "query", "rename": {"query": "sql"}},
        },
    )

    response = client.post("/api/oracle/convert", json={"tableName": "t", "id": 1})

    assert response.json()["forwarded"]["success"] is True
    sent = transport.requests[-1]
    assert sent.method == "PUT"
    assert sent.headers["X-Api"] == "v2"
    assert json.loads(sent.content) == {"sql": "INSERT INTO t (id) VALUES (1);"}


def test_global_transformer_set_and_clear(make_client) -> None:
    client, transport = make_client(
        Settings(DESTINATION_URL="http://runner/other", ENDPOINT_TRANSFORMERS=[]),
        lambda request: httpx.Response(200, json={}),
    )

    set_response = client.post("/api/config/transformer", json={"transform": {"format": "statements"}})
    client.post("/api/oracle/convert", json={"tableName": "t", "id": 1})
    listed = client.get("/api/config/transformers").json()
    cleared = client.post("/api/config/transformer", json={})

    assert set_response.status_code == 200
    assert listed["globalTransform"]["format"] == "statements"
    assert json.loads(transport.requests[0].content) == {
        "statements": ["INSERT INTO t (id) VALUES (1);"]
    }
    assert cleared.json()["globalTransform"] is None


def test_bearer_token_for_pattern(make_client) -> None:
    client, transport = make_client(
        Settings(DESTINATION_URL="http://secure-api/run", ENDPOINT_TRANSFORMERS=[]),
        lambda request: httpx.Response(200, json={}),
    )

    response = client.post(
        "/api/config/bearer-token", json={"token": "s3cr3t", "endpointPattern": "*secure-api*"}
    )
    client.post("/api/oracle/convert", json={"tableName": "t", "id": 1})

    assert response.status_code == 200
    assert "s3cr3t" not in response.text
    sent = transport.requests[0]
    assert sent.headers["Authorization"] == "Bearer s3cr3t"
    assert json.loads(sent.content) == {"query": "INSERT INTO t (id) VALUES (1);"}


def test_bearer_token_for_default_destination(make_client) -> None:
    client, transport = make_client(
        Settings(ENDPOINT_TRANSFORMERS=[]), lambda request: httpx.Response(200, json={})
    )

    response = client.post(
        "/api/config/bearer-token", json={"token": "tok", "url": "http://new-default/insert"}
    )
    destinations = client.get("/api/config/destinations").json()
    client.post("/api/oracle/convert", json={"tableName": "t", "id": 1})

    assert response.json()["destinationUrl"] == "http://new-default/insert"
    assert destinations["defaultDestination"]["url"] == "http://new-default/insert"
    assert "Authorization" in destinations["defaultDestination"]["headers"]
    assert transport.requests[0].headers["Authorization"] == "Bearer tok"


def test_bearer_token_requires_a_token(client) -> None:
    assert client.post("/api/config/bearer-token", json={"token": ""}).status_code == 400


def test_destinations_lists_routes(client) -> None:
    payload = client.get("/api/config/destinations").json()

    assert payload["routes"] == []
    assert payload["defaultDestination"] is None
