from fastapi.testclient import TestClient

from app.main import create_app


def test_http_exception_problem_json():
    app = create_app()
    client = TestClient(app)
    # unknown route -> 404 with RFC7807 body
    r = client.get("/objects/missing/key", headers={"X-User-Id": "u"})
    assert r.status_code == 404
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    body = r.json()
    for key in ("type", "title", "status", "detail", "instance", "error_code"):
        assert key in body
    assert body["status"] == 404
    assert body["error_code"] == "not_found"


def test_method_not_allowed_problem_json():
    app = create_app()
    client = TestClient(app)
    r = client.delete("/objects", headers={"X-User-Id": "u"})
    assert r.status_code == 405
    assert r.headers.get("content-type", "").startswith("application/problem+json")
    assert r.json()["error_code"] == "method_not_allowed"


def test_problem_json_echoes_request_id():
    app = create_app()
    client = TestClient(app)
    r = client.post("/objects", headers={"X-Request-Id": "req-42"})
    assert r.status_code == 400
    body = r.json()
    assert body["request_id"] == "req-42"
    assert body["instance"].endswith("/objects")
