"""
Access token verification for the hosted identity provider (Supabase Auth).

Why: Keep cryptographic validation outside the web adapter so we can unit
test it independently of FastAPI.

Security: Validates the HS256 signature with the project's JWT secret,
requires the `authenticated` audience, a subject, and enforces expiry with a
small clock skew allowance.
"""
from __future__ import annotations

from typing import Dict
import time

from jose import jwt
from jose.exceptions import JOSEError


class AccessTokenVerificationError(Exception):
    """Raised when the access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers
ALGORITHMS = ["HS256"]


def verify_access_token(*, token: str, secret: str, audience: str = "authenticated") -> Dict[str, object]:
    """Validate a Supabase access token and return its claims.

    Raises
    ------
    AccessTokenVerificationError:
        When the token is malformed, wrongly signed, has the wrong audience,
        lacks a subject, or is outside its validity window.
    """
    if not token or not isinstance(token, str):
        raise AccessTokenVerificationError("missing_token")
    try:
        header = jwt.get_unverified_header(token)
    except JOSEError as exc:
        raise AccessTokenVerificationError("malformed_token") from exc
    if header.get("alg") not in ALGORITHMS:
        raise AccessTokenVerificationError("unsupported_alg")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=ALGORITHMS,
            audience=audience,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
            },
        )
    except JOSEError as exc:
        raise AccessTokenVerificationError("invalid_token") from exc

    if not str(claims.get("sub") or "").strip():
        raise AccessTokenVerificationError("missing_sub")
    _validate_temporal_claims(claims)
    return claims


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise AccessTokenVerificationError("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise AccessTokenVerificationError("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise AccessTokenVerificationError("invalid_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise AccessTokenVerificationError("invalid_token")
