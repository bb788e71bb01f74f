"""
auth/credentials.py -- Credential verification primitives.

Every function here is pure and total: it answers yes or no and never
grants partial credit.

  Passwords: bcrypt directly (no passlib wrapper). bcrypt's cost factor makes
       brute-force expensive, so its result needs no constant-time compare.

  Legacy digest: the Subsonic t/s scheme sends md5(password + salt) as
       lowercase hex. It can only be recomputed from a stored plaintext, which
       is why CredentialRecord keeps legacy_password. The comparison is
       constant-time.

  Hex passwords: Subsonic clients may send p=enc:<hex>. decode_hex raises
       InvalidEncoding on malformed input; the negotiator treats that as a
       verification miss, not a protocol error.

  API keys: secrets.token_hex(24) gives 192 bits of entropy.

Layer rule: no imports from api/, library/ or subsonic/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

import bcrypt

ENC_PREFIX = "enc:"


class InvalidEncoding(ValueError):
    """Raised when an enc: password is not valid hex (or not valid UTF-8)."""


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password bcrypt refuses (> 72 bytes).
        return False


# Timing equalization: unknown usernames are checked against this hash so the
# response time does not reveal whether the username exists.
DUMMY_HASH: str = hash_password("sonicgate_timing_dummy")


# ---------------------------------------------------------------------------
# Constant-time comparison
# ---------------------------------------------------------------------------


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# ---------------------------------------------------------------------------
# Legacy salted digest (t/s)
# ---------------------------------------------------------------------------


def legacy_token(plaintext: str, salt: str) -> str:
    """Return md5(plaintext + salt) as lowercase hex, as Subsonic clients compute it."""
    return hashlib.md5((plaintext + salt).encode("utf-8")).hexdigest()  # noqa: S324 -- protocol-mandated


def verify_legacy_digest(plaintext: str | None, salt: str, presented_token: str) -> bool:
    """Return True if presented_token == md5(plaintext + salt).

    An empty or missing plaintext always fails: a user who never had a
    plaintext password recorded cannot use this scheme.
    """
    if not plaintext or not salt or not presented_token:
        return False
    return constant_time_equals(legacy_token(plaintext, salt), presented_token)


# ---------------------------------------------------------------------------
# Hex-encoded passwords (enc:)
# ---------------------------------------------------------------------------


def decode_hex(text: str) -> bytes:
    """Decode a hex string. Raises InvalidEncoding on malformed input."""
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise InvalidEncoding(f"not a valid hex string: {exc}") from exc


def decode_password_param(value: str) -> str:
    """Return the plaintext of a password parameter, decoding the enc: form.

    Used for password parameters that are not credentials (createUser,
    changePassword). Raises InvalidEncoding on a malformed enc: value.
    """
    if not value.startswith(ENC_PREFIX):
        return value
    raw = decode_hex(value[len(ENC_PREFIX) :])
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidEncoding("enc: password is not valid UTF-8") from exc


# ---------------------------------------------------------------------------
# API keys
# ---------------------------------------------------------------------------


def generate_api_key() -> str:
    """Generate a new API key: 24 random bytes as 48 hex characters."""
    return secrets.token_hex(24)
