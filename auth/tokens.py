"""
auth/tokens.py -- Bearer token codec (JWT).

python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
caller's identity claims, so the negotiator can authenticate a bearer
request without a store lookup:

  sub       username
  user_id   numeric user id
  is_admin  administrator flag
  exp       expiry (jose rejects expired tokens on decode)

Decoding returns None on any failure (bad signature, expired, missing
claims). The negotiator turns None into the generic code-40 failure.

Layer rule: no imports from api/, library/ or subsonic/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import Identity
from core.config import get_settings

_ALGORITHM = "HS256"


def create_access_token(identity: Identity, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for the given identity.

    expire_seconds: token lifetime. 0 (default) uses Settings.token_expire_seconds.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    payload = {
        "sub": identity.username,
        "user_id": identity.id,
        "is_admin": identity.is_admin,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=duration),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the claims dict or None on any failure."""
    try:
        claims = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if type(claims.get("user_id")) is not int or not claims.get("sub"):
        return None
    return claims


def identity_from_claims(claims: dict) -> Identity:
    return Identity(id=claims["user_id"], username=claims["sub"], is_admin=bool(claims.get("is_admin", False)))
