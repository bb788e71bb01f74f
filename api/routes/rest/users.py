"""
api/routes/rest/users.py -- User management over the Subsonic protocol.

Routes (each also at <name>.view, GET and POST):
  /rest/getUser         -- self, or any user for admins
  /rest/getUsers        -- admin only
  /rest/createUser      -- admin only
  /rest/updateUser      -- admin only (password, adminRole)
  /rest/deleteUser      -- admin only; an admin cannot delete themself
  /rest/changePassword  -- self, or any user for admins

Password parameters accept the enc:<hex> form. A malformed enc: value is a
parameter error (10), not a credential failure: these are new passwords,
not credentials being checked.

Authorization failures use code 50. Unknown target users are 70.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.routes.rest.common import bool_param, ok, require_param, subsonic_route
from auth.credentials import InvalidEncoding, decode_password_param, hash_password
from auth.dependencies import get_subsonic_identity, require_subsonic_admin
from auth.models import CredentialRecord, Identity
from auth.store import UserStore
from core.config import get_settings
from subsonic.errors import ErrorCode, SubsonicError
from subsonic.payloads import UserDetail, UserEntry, Users

logger = logging.getLogger("sonicgate.api")

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_entry(record: CredentialRecord) -> UserEntry:
    return UserEntry(
        username=record.username,
        admin_role=record.is_admin,
        settings_role=record.is_admin,
        folder=[1],
    )


def _new_password(request: Request) -> str:
    raw = require_param(request, "password")
    try:
        password = decode_password_param(raw)
    except InvalidEncoding:
        raise SubsonicError(ErrorCode.MISSING_PARAMETER, "Invalid value for parameter: password") from None
    if not password:
        raise SubsonicError.missing_parameter("password")
    return password


def _legacy_copy(password: str) -> str | None:
    return password if get_settings().store_legacy_passwords else None


def _target(user_store: UserStore, username: str) -> CredentialRecord:
    record = user_store.get_credentials(username)
    if record is None:
        raise SubsonicError.not_found("User")
    return record


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@subsonic_route(router, "getUser")
def get_user(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    username = require_param(request, "username")
    if username != identity.username and not identity.is_admin:
        raise SubsonicError.not_authorized("Admin rights required to view other users.")
    record = _target(request.app.state.user_store, username)
    return ok(request, UserDetail(user=_user_entry(record)))


@subsonic_route(router, "getUsers")
def get_users(request: Request, identity: Identity = Depends(require_subsonic_admin)) -> Response:
    user_store: UserStore = request.app.state.user_store
    return ok(request, Users(user=[_user_entry(r) for r in user_store.list_users()]))


# ---------------------------------------------------------------------------
# Write endpoints
# ---------------------------------------------------------------------------


@subsonic_route(router, "createUser")
def create_user(request: Request, identity: Identity = Depends(require_subsonic_admin)) -> Response:
    username = require_param(request, "username")
    password = _new_password(request)
    user_store: UserStore = request.app.state.user_store
    try:
        user_store.create_user(
            username,
            hash_password(password),
            legacy_password=_legacy_copy(password),
            is_admin=bool_param(request, "adminRole"),
        )
    except IntegrityError:
        raise SubsonicError.internal("Could not create user; username might already exist.") from None
    logger.info("User '%s' created by '%s'", username, identity.username)
    return ok(request)


@subsonic_route(router, "updateUser")
def update_user(request: Request, identity: Identity = Depends(require_subsonic_admin)) -> Response:
    user_store: UserStore = request.app.state.user_store
    target = _target(user_store, require_param(request, "username"))
    if request.query_params.get("password"):
        password = _new_password(request)
        user_store.update_password(target.id, hash_password(password), _legacy_copy(password))
    if request.query_params.get("adminRole"):
        admin = bool_param(request, "adminRole")
        if not admin and target.id == identity.id:
            raise SubsonicError.not_authorized("You cannot remove your own admin role.")
        user_store.set_admin(target.id, admin)
    logger.info("User '%s' updated by '%s'", target.username, identity.username)
    return ok(request)


@subsonic_route(router, "deleteUser")
def delete_user(request: Request, identity: Identity = Depends(require_subsonic_admin)) -> Response:
    username = require_param(request, "username")
    if username == identity.username:
        raise SubsonicError.not_authorized("You cannot delete your own account.")
    user_store: UserStore = request.app.state.user_store
    target = _target(user_store, username)
    user_store.delete_user(target.id)
    logger.info("User '%s' deleted by '%s'", username, identity.username)
    return ok(request)


@subsonic_route(router, "changePassword")
def change_password(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    """Set a new password. Defaults to the caller when ``username`` is omitted."""
    username = request.query_params.get("username") or identity.username
    if username != identity.username and not identity.is_admin:
        raise SubsonicError.not_authorized("Admin rights required to change another user's password.")
    password = _new_password(request)
    user_store: UserStore = request.app.state.user_store
    target = _target(user_store, username)
    user_store.update_password(target.id, hash_password(password), _legacy_copy(password))
    logger.info("Password changed for user '%s'", username)
    return ok(request)
