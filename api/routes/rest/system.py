"""
api/routes/rest/system.py -- Ping, extensions, license and API key endpoints.

Routes (each also at <name>.view, GET and POST):
  /rest/ping                       -- requires auth; carries type + serverVersion
  /rest/getOpenSubsonicExtensions  -- public; lists supported extensions
  /rest/getLicense                 -- requires auth
  /rest/tokenInfo                  -- requires auth via apiKey
  /rest/getApiKey                  -- requires auth; issues a key on first call
  /rest/revokeApiKey               -- requires auth; clears the caller's key

API keys are per user. getApiKey is idempotent: once a key exists it is
returned unchanged until revokeApiKey clears it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.routes.rest.common import ok, subsonic_route
from auth.credentials import generate_api_key
from auth.dependencies import get_subsonic_identity
from auth.models import Identity
from auth.store import UserStore
from core.config import get_settings
from subsonic.envelope import Envelope, subsonic_response
from subsonic.errors import SubsonicError
from subsonic.payloads import ApiKey, Extension, License, OpenSubsonicExtensions, TokenInfo

logger = logging.getLogger("sonicgate.api")

router = APIRouter()

SUPPORTED_EXTENSIONS = [
    Extension(name="apiKeyAuthentication", versions=[1]),
]


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@subsonic_route(router, "getOpenSubsonicExtensions")
def get_open_subsonic_extensions(request: Request) -> Response:
    return ok(request, OpenSubsonicExtensions(extensions=SUPPORTED_EXTENSIONS))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@subsonic_route(router, "ping")
def ping(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    """Connectivity and login check. Carries the server type and version."""
    settings = get_settings()
    envelope = Envelope.ok(server_type=settings.server_name, server_version=settings.server_version)
    return subsonic_response(request, envelope)


@subsonic_route(router, "getLicense")
def get_license(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    return ok(request, License(valid=True))


@subsonic_route(router, "tokenInfo")
def token_info(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    """Describe the API key the request was made with."""
    if not request.query_params.get("apiKey"):
        raise SubsonicError.missing_parameter("apiKey")
    return ok(request, TokenInfo(username=identity.username))


@subsonic_route(router, "getApiKey")
def get_api_key(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    user_store: UserStore = request.app.state.user_store
    key = user_store.issue_api_key(identity.id, generate_api_key)
    if key is None:
        # Bearer claims can outlive the account they were issued for.
        raise SubsonicError.not_found("User")
    logger.info("API key issued for user '%s'", identity.username)
    return ok(request, ApiKey(key=key))


@subsonic_route(router, "revokeApiKey")
def revoke_api_key(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    user_store: UserStore = request.app.state.user_store
    if not user_store.set_api_key(identity.id, None):
        raise SubsonicError.not_found("User")
    logger.info("API key revoked for user '%s'", identity.username)
    return ok(request)
