"""
auth/negotiator.py -- Picks exactly one Subsonic auth scheme and verifies it.

Schemes (at most one field-set may be populated per request):
  1. apiKey                      -- OpenSubsonic API key; u must be absent.
  2. u + p                       -- plaintext or enc:<hex> password. A decoded
                                    enc: value may also be the user's API key.
  3. u + t + s                   -- legacy md5(password + salt) digest.
  4. Authorization: Bearer <jwt> -- signed identity claims, no store lookup.

Conflict rule: count {apiKey}, {u with p or t}, {bearer}. More than one is
error 43 before any credential is looked at. The message never says which
schemes collided.

Failure policy: unknown username, wrong password, wrong digest, empty
legacy password, unknown API key and a bad or expired bearer token all
produce the same AuthFailure(40, AUTH_FAILED_MESSAGE). Unknown usernames
still pay for a bcrypt check (DUMMY_HASH) so timing does not enumerate
users. A store exception is logged and becomes code 0.

negotiate() never raises. It has no side effects beyond the lookups.

Layer rule: no imports from api/, library/ or subsonic/. Error codes are
plain ints here; they match subsonic.errors.ErrorCode.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from auth.credentials import (
    DUMMY_HASH,
    ENC_PREFIX,
    InvalidEncoding,
    constant_time_equals,
    decode_hex,
    verify_legacy_digest,
    verify_password,
)
from auth.models import AuthAttempt, AuthFailure, CredentialRecord, Identity
from auth.tokens import identity_from_claims

logger = logging.getLogger("sonicgate.auth")

MISSING_PARAMETER = 10
WRONG_CREDENTIALS = 40
CONFLICTING_PARAMETERS = 43
GENERIC = 0

AUTH_FAILED_MESSAGE = "Wrong username or password."

AUTH_FAILED = AuthFailure(WRONG_CREDENTIALS, AUTH_FAILED_MESSAGE)
CONFLICTING_MECHANISMS = AuthFailure(
    CONFLICTING_PARAMETERS, "Multiple conflicting authentication mechanisms provided"
)
USERNAME_WITH_API_KEY = AuthFailure(
    CONFLICTING_PARAMETERS, "Username parameter (u) must not be provided when using an API key."
)
NO_CREDENTIALS = AuthFailure(MISSING_PARAMETER, "Required parameter is missing: u")
STORE_FAILURE = AuthFailure(GENERIC, "Internal server error.")


class CredentialStore(Protocol):
    def get_credentials(self, username: str) -> CredentialRecord | None: ...

    def get_identity_by_api_key(self, api_key: str) -> Identity | None: ...


TokenDecoder = Callable[[str], "dict | None"]


def count_mechanisms(attempt: AuthAttempt) -> int:
    """Return how many auth field-sets the request populates."""
    count = 0
    if attempt.api_key:
        count += 1
    if attempt.username and (attempt.password or attempt.token):
        count += 1
    if attempt.bearer:
        count += 1
    return count


def negotiate(attempt: AuthAttempt, store: CredentialStore, decode_token: TokenDecoder) -> Identity | AuthFailure:
    """Resolve the caller of one request, or say why not."""
    if count_mechanisms(attempt) > 1:
        return CONFLICTING_MECHANISMS
    if attempt.api_key and attempt.username:
        return USERNAME_WITH_API_KEY

    try:
        if attempt.api_key:
            return _by_api_key(attempt.api_key, store)
        if attempt.username and (attempt.password or attempt.token):
            return _by_username(attempt, store)
    except SQLAlchemyError:
        logger.exception("Credential store lookup failed")
        return STORE_FAILURE

    if attempt.bearer:
        return _by_bearer(attempt.bearer, decode_token)
    if attempt.username:
        # u on its own: nothing to verify against.
        return AUTH_FAILED
    return NO_CREDENTIALS


# ---------------------------------------------------------------------------
# Schemes
# ---------------------------------------------------------------------------


def _by_api_key(api_key: str, store: CredentialStore) -> Identity | AuthFailure:
    identity = store.get_identity_by_api_key(api_key)
    return identity if identity is not None else AUTH_FAILED


def _by_username(attempt: AuthAttempt, store: CredentialStore) -> Identity | AuthFailure:
    record = store.get_credentials(attempt.username)
    if record is None:
        if attempt.password:
            verify_password(attempt.password, DUMMY_HASH)
        return AUTH_FAILED

    if attempt.password and _password_matches(attempt.password, record):
        return _identity(record)
    if attempt.token and attempt.salt and verify_legacy_digest(record.legacy_password, attempt.salt, attempt.token):
        return _identity(record)
    return AUTH_FAILED


def _password_matches(password: str, record: CredentialRecord) -> bool:
    if not password.startswith(ENC_PREFIX):
        return verify_password(password, record.password_hash)
    try:
        decoded = decode_hex(password[len(ENC_PREFIX) :]).decode("utf-8")
    except (InvalidEncoding, UnicodeDecodeError):
        return False
    if record.api_key is not None and constant_time_equals(decoded, record.api_key):
        return True
    return verify_password(decoded, record.password_hash)


def _by_bearer(token: str, decode_token: TokenDecoder) -> Identity | AuthFailure:
    claims = decode_token(token)
    if claims is None:
        return AUTH_FAILED
    return identity_from_claims(claims)


def _identity(record: CredentialRecord) -> Identity:
    return Identity(id=record.id, username=record.username, is_admin=record.is_admin)
