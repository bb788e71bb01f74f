"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
negotiator do the work.

Layer rule: no imports from api/, library/ or subsonic/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of one request.

    Built by the negotiator from a CredentialRecord or from bearer-token
    claims. Never persisted and never mutated once attached to a request.
    """

    id: int
    username: str
    is_admin: bool = False


@dataclass
class CredentialRecord:
    """One row of the credential store.

    password_hash is the bcrypt hash used by the p= scheme.

    legacy_password is the plaintext copy the t/s digest scheme needs: a
    salted MD5 cannot be checked against a one-way hash. None (or "") means
    the user cannot authenticate with t/s.

    api_key is None until the user first calls getApiKey. It is unique
    across users and doubles as an enc: password.
    """

    username: str
    password_hash: str
    id: int | None = None
    legacy_password: str | None = None
    is_admin: bool = False
    api_key: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class AuthAttempt:
    """The credential-bearing fields of one request. Empty strings are None."""

    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None
    salt: str | None = None
    bearer: str | None = None


@dataclass(frozen=True)
class AuthFailure:
    """Why a request could not be authenticated (a Subsonic error code + message)."""

    code: int
    message: str
