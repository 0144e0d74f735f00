"""
Shared authentication utilities.

Why:
    The middleware and the tests need one definition of where a session
    credential is read from.

Design:
    Pure helper: it takes a connection and returns a value; callers decide
    what to do with it.
"""

from __future__ import annotations

from typing import Optional

from starlette.requests import HTTPConnection

SESSION_COOKIE_NAME = "stagehub_session"


def session_credential(conn: HTTPConnection) -> Optional[str]:
    """Return the session credential from the cookie, else a Bearer token.

    The cookie wins so a browser session is never shadowed by a stray header.
    """
    cookie = conn.cookies.get(SESSION_COOKIE_NAME)
    if cookie:
        return cookie
    auth = conn.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


__all__ = ["SESSION_COOKIE_NAME", "session_credential"]
