"""
api/routes/v1/auth.py -- Web login bridge.

Routes:
  POST /api/v1/auth/login  -- password login; returns a bearer JWT
  GET  /api/v1/auth/me     -- identity behind the bearer token (requires auth)

The token returned by /login is accepted by every /rest endpoint as
"Authorization: Bearer <token>", so a web UI can drive the Subsonic API
without keeping the password around.

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  Unknown usernames are checked against DUMMY_HASH so timing does not reveal
  whether the account exists; both misses return the same error body.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse
from auth.credentials import DUMMY_HASH, verify_password
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.store import UserStore
from auth.tokens import create_access_token
from core.config import get_settings

router = APIRouter()


@limiter.limit(lambda: get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token."""
    user_store: UserStore = request.app.state.user_store
    record = user_store.get_credentials(body.username)
    if record is None:
        verify_password(body.password, DUMMY_HASH)
        matched = False
    else:
        matched = verify_password(body.password, record.password_hash)

    if not matched:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    identity = Identity(id=record.id, username=record.username, is_admin=record.is_admin)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=create_access_token(identity),
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=get_settings().token_expire_seconds,
            username=identity.username,
            is_admin=identity.is_admin,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return identity information for the bearer token's owner."""
    return MeResponse.from_identity(identity)
