"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two entry points, one per API surface:

  get_subsonic_identity()  -- /rest/* endpoints. Reads apiKey, u, p, t, s and
                              the Authorization header, runs the negotiator
                              and raises SubsonicError on failure so the
                              handler never runs. The error is rendered as a
                              Subsonic envelope by api/main.py.

  get_current_identity()   -- /api/v1/* web endpoints. Bearer token only;
                              raises HTTPException(401) in the web API's JSON
                              error shape.

require_subsonic_admin() wraps get_subsonic_identity() and raises error 50
for non-admin callers.

Layer rule: no imports from api/ or library/. This module is the FastAPI
seam of auth/, so it may import fastapi and subsonic.errors.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import AuthAttempt, AuthFailure, Identity
from auth.negotiator import negotiate
from auth.tokens import decode_access_token, identity_from_claims
from subsonic.errors import SubsonicError


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def auth_attempt_from_request(request: Request) -> AuthAttempt:
    """Collect the credential-bearing fields of a /rest request."""
    params = request.query_params
    return AuthAttempt(
        api_key=params.get("apiKey") or None,
        username=params.get("u") or None,
        password=params.get("p") or None,
        token=params.get("t") or None,
        salt=params.get("s") or None,
        bearer=_bearer_token(request),
    )


def get_subsonic_identity(request: Request) -> Identity:
    """Authenticate a /rest request or short-circuit with a Subsonic error.

    Use as a FastAPI dependency:
        @router.api_route("/getLicense", methods=["GET", "POST"])
        def get_license(request: Request, identity: Identity = Depends(get_subsonic_identity)): ...
    """
    outcome = negotiate(auth_attempt_from_request(request), request.app.state.user_store, decode_access_token)
    if isinstance(outcome, AuthFailure):
        raise SubsonicError(outcome.code, outcome.message)
    request.state.identity = outcome
    return outcome


def require_subsonic_admin(request: Request) -> Identity:
    """Require an admin caller on a /rest endpoint. Non-admins get error 50."""
    identity = get_subsonic_identity(request)
    if not identity.is_admin:
        raise SubsonicError.not_authorized("Admin rights required for this operation.")
    return identity


def get_current_identity(request: Request) -> Identity:
    """Require a valid bearer token on a web API endpoint. Raises HTTP 401 otherwise."""
    token = _bearer_token(request)
    claims = decode_access_token(token) if token else None
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return identity_from_claims(claims)
