"""
API auth enforcement: 401 JSON without a session, public allowlist, headers.
"""
from __future__ import annotations

import pytest

import main  # type: ignore
from auth_utils import SESSION_COOKIE_NAME  # type: ignore

from utils.api import client, error_detail, session_only, sign_in
from utils.builders import new_id


pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
@pytest.mark.parametrize("path", ["/api/me", "/api/subjects", "/api/choices", "/api/assignments", "/api/admin/users"])
async def test_api_unauthenticated_returns_401_json(path: str):
    async with client() as c:
        r = await c.get(path)
    assert r.status_code == 401
    assert r.headers.get("Cache-Control") == "private, no-store"
    assert r.json() == {"error": "unauthenticated", "detail": "unauthenticated", "message": "Sign-in required"}


@pytest.mark.anyio
async def test_unknown_session_is_unauthenticated():
    async with client() as c:
        r = await c.get("/api/me", headers={"Authorization": "Bearer not-a-session"})
    assert r.status_code == 401


@pytest.mark.anyio
async def test_health_and_docs_are_public():
    async with client() as c:
        health = await c.get("/health")
        schema = await c.get("/openapi.json")
    assert health.status_code == 200
    assert health.json() == {"status": "healthy"}
    assert schema.status_code == 200


@pytest.mark.anyio
async def test_session_cookie_is_accepted():
    user_id, _ = sign_in("student")
    rec = main.SESSION_STORE.create(sub=user_id, email="cookie@univ.test")
    async with client() as c:
        c.cookies.set(SESSION_COOKIE_NAME, rec.session_id)
        r = await c.get("/api/me")
    assert r.status_code == 200
    assert r.json()["id"] == user_id


@pytest.mark.anyio
async def test_session_without_profile_gets_profile_missing():
    headers = session_only(new_id(), "new@univ.test")
    async with client() as c:
        r = await c.get("/api/subjects", headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "profile_missing"


@pytest.mark.anyio
async def test_security_headers_present():
    async with client() as c:
        r = await c.get("/health")
    assert r.headers.get("X-Frame-Options") == "DENY"
    assert r.headers.get("X-Content-Type-Options") == "nosniff"
    assert "frame-ancestors 'none'" in r.headers.get("Content-Security-Policy", "")
    assert r.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"
    assert "max-age" in r.headers.get("Strict-Transport-Security", "")


@pytest.mark.anyio
async def test_validation_errors_use_shared_400_shape():
    _, headers = sign_in("student")
    async with client() as c:
        r = await c.post("/api/choices", json={}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"
    assert error_detail(r) == "invalid_input"
    assert r.headers.get("Cache-Control") == "private, no-store"
