"""
subsonic/errors.py -- Protocol error codes and their HTTP status mapping.

The numeric codes are part of the Subsonic wire contract. Clients switch on
them (e.g. to show a login dialog on 40), so they must never be renumbered.

HTTP status table (fixed, clients depend on it):
  10        -> 400
  40..44    -> 401
  70        -> 404
  anything else on a failed response -> 500
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    GENERIC = 0
    MISSING_PARAMETER = 10
    WRONG_CREDENTIALS = 40
    TOKEN_AUTH_NOT_SUPPORTED = 41  # reserved
    AUTH_MECHANISM_NOT_SUPPORTED = 42  # reserved
    CONFLICTING_PARAMETERS = 43
    INVALID_API_KEY = 44  # reserved -- invalid keys are reported as 40
    NOT_AUTHORIZED = 50
    NOT_FOUND = 70


_HTTP_STATUS: dict[int, int] = {
    ErrorCode.MISSING_PARAMETER: 400,
    ErrorCode.WRONG_CREDENTIALS: 401,
    ErrorCode.TOKEN_AUTH_NOT_SUPPORTED: 401,
    ErrorCode.AUTH_MECHANISM_NOT_SUPPORTED: 401,
    ErrorCode.CONFLICTING_PARAMETERS: 401,
    ErrorCode.INVALID_API_KEY: 401,
    ErrorCode.NOT_FOUND: 404,
}


def http_status_for(code: int) -> int:
    """Return the HTTP status for a failed response carrying this error code."""
    return _HTTP_STATUS.get(int(code), 500)


class SubsonicError(Exception):
    """A failure that must reach the client as a Subsonic error envelope.

    Raised by route handlers and the auth dependency; the exception handler
    registered in api/main.py renders it in the caller's requested format.
    """

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message

    @classmethod
    def missing_parameter(cls, name: str) -> SubsonicError:
        return cls(ErrorCode.MISSING_PARAMETER, f"Required parameter is missing: {name}")

    @classmethod
    def not_found(cls, what: str) -> SubsonicError:
        return cls(ErrorCode.NOT_FOUND, f"{what} not found.")

    @classmethod
    def not_authorized(cls, message: str = "User is not authorized for the given operation.") -> SubsonicError:
        return cls(ErrorCode.NOT_AUTHORIZED, message)

    @classmethod
    def internal(cls, message: str = "Internal server error.") -> SubsonicError:
        return cls(ErrorCode.GENERIC, message)

    def __repr__(self) -> str:
        return f"SubsonicError(code={self.code}, message={self.message!r})"
