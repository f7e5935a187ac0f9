"""
Tests: API Security & Error Envelope

Bearer-token enforcement, the uniform ``{success, error}`` envelope for
infrastructure failures, and the health endpoints.
"""
import logging

import httpx
from jose import jwt

from conftest import API, BASE_URL, auth_headers

from bookkeeping.config import Settings, settings
from bookkeeping.database import build_engine, build_session_factory
from bookkeeping.main import app
from bookkeeping.middleware.auth import create_access_token
from bookkeeping.services.reports import ReportEngine


class TestAuthentication:

    async def test_missing_token_rejected(self, client, org):
        r = await client.get(f"{API}/accounts/organization/{org['id']}")
        assert r.status_code == 401
        assert r.headers["www-authenticate"] == "Bearer"
        body = r.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"

    async def test_garbage_token_rejected(self, client):
        r = await client.get(f"{API}/accounts/types", headers=auth_headers("not.a.jwt"))
        assert r.status_code == 401

    async def test_token_signed_with_other_key_rejected(self, client):
        forged = jwt.encode({"sub": "mallory"}, "some-other-secret", algorithm="HS256")
        r = await client.get(f"{API}/accounts/types", headers=auth_headers(forged))
        assert r.status_code == 401

    async def test_expired_token_rejected(self, client):
        expired = create_access_token({"sub": "accountant@example.com"}, expires_minutes=-5)
        r = await client.get(f"{API}/accounts/types", headers=auth_headers(expired))
        assert r.status_code == 401

    async def test_token_without_subject_rejected(self, client):
        anonymous = create_access_token({"name": "Nobody"})
        r = await client.get(f"{API}/accounts/types", headers=auth_headers(anonymous))
        assert r.status_code == 401

    async def test_writes_require_token(self, client, org):
        r = await client.post(
            f"{API}/journal-entries",
            json={"organizationId": org["id"], "date": "2024-01-01", "reference": "X", "lines": []},
        )
        assert r.status_code == 401


class TestErrorEnvelope:

    async def test_unknown_route_is_not_found(self, client, headers):
        r = await client.get(f"{API}/nowhere", headers=headers)
        assert r.status_code == 404
        assert r.json() == {"success": False, "error": {"code": "NOT_FOUND", "message": "Not Found"}}

    async def test_unknown_organization(self, client, headers):
        r = await client.get(f"{API}/organizations/777", headers=headers)
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "ORGANIZATION_NOT_FOUND"

    async def test_unexpected_error_hides_details_outside_development(
        self, client, headers, org, monkeypatch
    ):
        async def explode(self, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(ReportEngine, "trial_balance", explode)
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        r = await client.get(f"{API}/reports/trial-balance/organization/{org['id']}", headers=headers)
        assert r.status_code == 500
        error = r.json()["error"]
        assert error["code"] == "SERVER_ERROR"
        assert "details" not in error

    async def test_unexpected_error_shows_details_in_development(
        self, client, headers, org, monkeypatch
    ):
        async def explode(self, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(ReportEngine, "trial_balance", explode)
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")

        r = await client.get(f"{API}/reports/trial-balance/organization/{org['id']}", headers=headers)
        assert r.status_code == 500
        assert r.json()["error"]["details"] == "boom"

    async def test_unreachable_database_is_service_unavailable(self, tmp_path, token):
        """A store that cannot be opened maps to 503 DATABASE_ERROR."""
        missing = tmp_path / "no-such-dir" / "ledger.db"
        engine = build_engine(Settings(DATABASE_URL=f"sqlite+aiosqlite:///{missing}"))
        app.state.session_factory = build_session_factory(engine)
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        try:
            async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as c:
                r = await c.get(f"{API}/health/db")
                assert r.status_code == 503
                assert r.json()["error"]["code"] == "DATABASE_ERROR"

                r = await c.get(f"{API}/accounts/types", headers=auth_headers(token))
                assert r.status_code == 503
        finally:
            await engine.dispose()


class TestHealthAndLogging:

    async def test_health(self, client):
        r = await client.get(f"{API}/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["service"] == "Bookkeeping API"

    async def test_database_health(self, client):
        r = await client.get(f"{API}/health/db")
        assert r.status_code == 200
        assert r.json()["database"] == "reachable"

    async def test_access_log_records_caller(self, client, headers, caplog):
        with caplog.at_level(logging.INFO, logger="bookkeeping.access"):
            await client.get(f"{API}/accounts/types", headers=headers)
            await client.get(f"{API}/health")

        lines = [r.getMessage() for r in caplog.records if r.name == "bookkeeping.access"]
        assert len(lines) == 1
        assert lines[0].startswith("GET /api/v1/accounts/types 200")
        assert lines[0].endswith("user=accountant@example.com")

    async def test_access_log_records_failed_request(self, client, headers, org, caplog, monkeypatch):
        async def explode(self, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(ReportEngine, "trial_balance", explode)
        path = f"/api/v1/reports/trial-balance/organization/{org['id']}"

        with caplog.at_level(logging.INFO, logger="bookkeeping.access"):
            r = await client.get(f"{BASE_URL}{path}", headers=headers)
        assert r.status_code == 500

        lines = [r.getMessage() for r in caplog.records if r.name == "bookkeeping.access"]
        assert len(lines) == 1
        assert lines[0].startswith(f"GET {path} 500")
        assert lines[0].endswith("user=accountant@example.com")
