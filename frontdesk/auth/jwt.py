"""Signed bearer tokens for staff sessions.

Every token carries ``type`` (``access`` or ``refresh``), ``iat`` and ``exp``
on top of the caller's claims. Only access tokens open API routes; refresh
tokens are accepted solely by ``POST /api/v1/auth/refresh``.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from frontdesk.config import settings


def _sign(claims: dict, lifetime: timedelta, token_type: str) -> str:
    issued = datetime.now(timezone.utc)
    body = {**claims, "type": token_type, "iat": issued, "exp": issued + lifetime}
    return jwt.encode(body, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.jwt_access_token_expire_minutes)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Short-lived token for API calls. ``data`` should hold ``sub`` (the user id)."""
    return _sign(data, expires_delta or access_token_lifetime(), "access")


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    return _sign(data, expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days), "refresh")


def decode_token(token: str) -> dict:
    """Verify signature and expiry and return the claims.

    Raises:
        jose.JWTError: On a bad signature, an expired token or garbage input.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_token_pair(user_id: str, role: str) -> dict[str, str | int]:
    """Access and refresh tokens for one account, shaped like ``TokenResponse``.

    ``role`` is informational for clients; route guards read it from the database.
    """
    claims = {"sub": user_id, "role": role}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
        "expires_in": int(access_token_lifetime().total_seconds()),
    }
