"""Tests for app wiring: error envelopes, middleware headers, functions."""

from __future__ import annotations

from fastapi.testclient import TestClient

from folio.api import create_app
from tests._support.accounts import make_settings

CONTACT = {"name": "Jane", "email": "jane@example.com", "message": "Hello there"}


class TestErrorEnvelopes:
    def test_unknown_route(self, client, editor_headers):
        response = client.get("/no/such/route", headers=editor_headers)
        assert response.status_code == 404
        assert response.json() == {"data": None, "error": {"code": "NOT_FOUND", "message": "Endpoint not found"}}

    def test_wrong_method(self, client, editor_headers):
        response = client.get("/database", headers=editor_headers)
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "EXECUTION_ERROR"

    def test_details_only_in_debug(self, tmp_path):
        app = create_app(settings=make_settings(tmp_path, debug=True))
        with TestClient(app) as client:
            response = client.post("/auth/signup", json={"email": "x@example.com", "password": "short"})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "password"}


class TestMiddleware:
    def test_request_id_echoed(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time-Ms" in response.headers

    def test_cors(self, client):
        response = client.get("/health/live", headers={"Origin": "http://studio.example"})
        assert response.headers["access-control-allow-origin"] == "*"

    def test_rate_limit(self, tmp_path):
        app = create_app(settings=make_settings(tmp_path, rate_limit_enabled=True, rate_limit_requests=2))
        with TestClient(app) as client:
            assert client.get("/functions").status_code == 200
            assert client.get("/functions").headers["X-RateLimit-Remaining"] == "0"
            limited = client.get("/functions")
            # health checks are never limited
            assert client.get("/health/live").status_code == 200
        assert limited.status_code == 429
        assert limited.json()["error"]["code"] == "RATE_LIMITED"
        assert int(limited.headers["Retry-After"]) >= 1


class TestFunctions:
    def test_list(self, client):
        body = client.get("/functions").json()
        assert body["data"] == ["send-contact-email"]
        assert body["count"] == 1

    def test_contact_form_without_token(self, client):
        response = client.post("/functions/send-contact-email", json=CONTACT)
        assert response.status_code == 200
        assert response.json()["data"]["success"] is True

    def test_contact_form_validation(self, client):
        response = client.post("/functions/send-contact-email", json={"name": "Jane"})
        assert response.status_code == 400

    def test_unknown_function(self, client):
        response = client.post("/functions/nope", json={})
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Function not found: nope"


def test_lifespan_reports_failed_migrations(tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_broken.sql").write_text("CREATE TABLE broken (;\n")
    schema = tmp_path / "schema.sql"
    schema.write_text("CREATE TABLE broken (;\n")
    settings = make_settings(tmp_path, migrations_dir=migrations, schema_file=schema)
    with TestClient(create_app(settings=settings)) as client:
        body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["migrations"]["failed"]["success"] is False
