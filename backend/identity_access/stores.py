"""
Session stores resolving an opaque credential to a signed-in identity.

Why: The web adapter only needs `get(credential) -> SessionRecord | None`.
Two backends share that shape:
  - `SessionStore`: in-memory, for development and tests.
  - `SupabaseTokenSessionStore`: verifies Supabase access tokens (stateless).

Security: Cookies carry only an opaque session id or a signed access token.
Session data stays server-side (memory) or inside the signed token.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import secrets
import threading
import time

from .tokens import AccessTokenVerificationError, verify_access_token


logger = logging.getLogger("stagehub.identity_access")


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    email: str
    expires_at: Optional[int] = None

    @property
    def ttl_seconds(self) -> int:
        if not self.expires_at:
            return 0
        return max(0, self.expires_at - _now())


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, *, sub: str, email: str = "", ttl_seconds: int = 3600) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(session_id=sid, sub=sub, email=email, expires_at=_now() + ttl_seconds)
        with self._lock:
            self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            rec = self._data.get(session_id)
            if not rec:
                return None
            if rec.expires_at and rec.expires_at < _now():
                self._data.pop(session_id, None)
                return None
            return rec

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)


class SupabaseTokenSessionStore:
    """Treat a Supabase access token as the session credential.

    Sign-in itself happens at the identity provider; this store only verifies
    the token signature and temporal claims and exposes `sub`/`email`.
    """

    def __init__(self, *, jwt_secret: str, audience: str = "authenticated"):
        if not jwt_secret:
            raise ValueError("jwt_secret_required")
        self._secret = jwt_secret
        self._audience = audience

    def get(self, token: str) -> Optional[SessionRecord]:
        if not token:
            return None
        try:
            claims = verify_access_token(token=token, secret=self._secret, audience=self._audience)
        except AccessTokenVerificationError as exc:
            logger.info("Access token rejected: %s", exc.code)
            return None
        exp = claims.get("exp")
        return SessionRecord(
            session_id=token,
            sub=str(claims.get("sub") or ""),
            email=str(claims.get("email") or ""),
            expires_at=int(exp) if isinstance(exp, (int, float)) else None,
        )

    def delete(self, token: str) -> None:
        # Stateless: sign-out is handled by the identity provider.
        return None


__all__ = ["SessionRecord", "SessionStore", "SupabaseTokenSessionStore"]
