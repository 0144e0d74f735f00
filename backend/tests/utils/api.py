"""
Helpers for API contract tests: an ASGI client and signed-in callers.

Sessions are created in `main.SESSION_STORE` and sent as Bearer credentials,
so one client can act as several users in the same test.
"""
from __future__ import annotations

from typing import Optional, Tuple

import httpx
from httpx import ASGITransport

import main  # type: ignore
from routes import common  # type: ignore

from utils.builders import make_user


def client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


def repo():
    return common._get_repo()


def notifier():
    return common._get_notifier()


def bearer(session_id: str) -> dict:
    return {"Authorization": f"Bearer {session_id}"}


def session_only(sub: str, email: str = "") -> dict:
    """Headers for a signed-in identity that has no profile yet."""
    rec = main.SESSION_STORE.create(sub=sub, email=email)
    return bearer(rec.session_id)


def sign_in(role: str, **profile) -> Tuple[str, dict]:
    """Create a profile with `role` plus a session; return (user_id, headers)."""
    ctx = make_user(repo(), role, **profile)
    rec = main.SESSION_STORE.create(sub=ctx.user_id, email=ctx.email)
    return ctx.user_id, bearer(rec.session_id)


def error_detail(resp: httpx.Response) -> Optional[str]:
    try:
        return resp.json().get("detail")
    except ValueError:
        return None
