from fastapi.testclient import TestClient


def test_health_endpoint_returns_ok(app):
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "time" in body


def test_root_lists_tools(app):
    body = TestClient(app).get("/").json()
    assert body["status"] == "online"
    assert body["available_tools"] == {
        "search": "/api/search/openapi.json",
        "evolution": "/api/evolution/openapi.json",
    }


def test_tool_openapi_documents(app):
    client = TestClient(app)

    search = client.get("/api/search/openapi.json").json()
    assert search["openapi"] == "3.1.0"
    assert search["servers"] == [{"url": "/api/search"}]
    assert search["paths"]["/web-search"]["post"]["operationId"] == "webSearch"

    evolution = client.get("/api/evolution/openapi.json").json()
    assert "/instances/{instanceName}/status-stream" in evolution["paths"]
    assert "/webhook" in evolution["paths"]
