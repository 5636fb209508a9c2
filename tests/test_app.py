"""
Application wiring: health check, request ids, error envelope and rate limiting
"""
from fastapi.testclient import TestClient

from smartstudy.main import create_app


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"


def test_request_id_is_generated(client):
    response = client.get("/api/notes")

    assert response.headers["X-Request-ID"]


def test_unknown_route(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "Route /api/nothing-here not found"},
    }


def test_rate_limit(settings):
    limited = settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "RATE_LIMIT_MAX": 2})

    with TestClient(create_app(limited)) as client:
        assert client.get("/api/notes").status_code == 200
        assert client.get("/api/notes").status_code == 200
        response = client.get("/api/notes")

        assert response.status_code == 429
        assert response.json()["error"]["message"] == "Too many requests, please try again later."
        assert response.headers["Retry-After"] == str(limited.RATE_LIMIT_WINDOW_MINUTES * 60)
        assert client.get("/health").status_code == 200


def test_rate_limit_is_shared_across_routers(settings):
    limited = settings.model_copy(update={"RATE_LIMIT_ENABLED": True, "RATE_LIMIT_MAX": 2})

    with TestClient(create_app(limited)) as client:
        assert client.get("/api/notes/stats").status_code == 200
        assert client.get("/api/reviews/stats/00000000-0000-0000-0000-000000000000").status_code == 404
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"})

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
