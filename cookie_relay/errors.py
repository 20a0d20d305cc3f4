"""
Error taxonomy for the relay.

Every failure a handler can surface is a ``CookieRelayError`` subclass. The
API layer renders them into the response envelope using ``status_code``.
"""

from enum import Enum
from typing import Optional

GENERIC_ERROR_MESSAGE = 'Something went wrong'


class ErrorKind(str, Enum):
    VALIDATION = 'validation'
    AUTH = 'auth'
    STORAGE = 'storage'
    NOT_FOUND = 'not_found'
    UNAVAILABLE = 'unavailable'


class CookieRelayError(Exception):
    kind: ErrorKind = ErrorKind.STORAGE
    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CookieRelayError):
    """Missing or malformed input; the caller's fault."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class AuthFailure(CookieRelayError):
    kind = ErrorKind.AUTH
    status_code = 401

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, detail=code, status_code=status_code)
        self.code = code


class StorageFailure(CookieRelayError):
    """The document store is unreachable or rejected the operation."""

    kind = ErrorKind.STORAGE
    status_code = 500


class NotFound(CookieRelayError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ServiceUnavailable(CookieRelayError):
    kind = ErrorKind.UNAVAILABLE
    status_code = 503


# ──────────────────────────────────────────────────────────────────────────────
# Identity provider error codes → user-facing messages
# ──────────────────────────────────────────────────────────────────────────────

class AuthErrorKind(str, Enum):
    USER_NOT_FOUND = 'user-not-found'
    WRONG_PASSWORD = 'wrong-password'
    INVALID_CREDENTIALS = 'invalid-credentials'
    EMAIL_IN_USE = 'email-already-in-use'
    WEAK_PASSWORD = 'weak-password'
    INVALID_EMAIL = 'invalid-email'
    EMAIL_NOT_CONFIRMED = 'email-not-confirmed'
    USER_DISABLED = 'user-disabled'
    TOO_MANY_REQUESTS = 'too-many-requests'
    NETWORK_FAILED = 'network-request-failed'
    UNKNOWN = 'unknown'


DEFAULT_AUTH_ERROR_MESSAGE = 'An error occurred. Please try again.'

AUTH_ERROR_MESSAGES = {
    AuthErrorKind.USER_NOT_FOUND: 'No account found with this email address',
    AuthErrorKind.WRONG_PASSWORD: 'Incorrect password',
    AuthErrorKind.INVALID_CREDENTIALS: 'Invalid email or password',
    AuthErrorKind.EMAIL_IN_USE: 'An account with this email already exists',
    AuthErrorKind.WEAK_PASSWORD: 'Password should be at least 6 characters',
    AuthErrorKind.INVALID_EMAIL: 'Invalid email address',
    AuthErrorKind.EMAIL_NOT_CONFIRMED: 'Please confirm your email address before signing in',
    AuthErrorKind.USER_DISABLED: 'This account has been disabled',
    AuthErrorKind.TOO_MANY_REQUESTS: 'Too many failed attempts. Please try again later',
    AuthErrorKind.NETWORK_FAILED: 'Network error. Please check your connection',
}

# Supabase Auth error codes
_PROVIDER_CODES = {
    'user_not_found': AuthErrorKind.USER_NOT_FOUND,
    'invalid_credentials': AuthErrorKind.INVALID_CREDENTIALS,
    'email_exists': AuthErrorKind.EMAIL_IN_USE,
    'user_already_exists': AuthErrorKind.EMAIL_IN_USE,
    'weak_password': AuthErrorKind.WEAK_PASSWORD,
    'email_address_invalid': AuthErrorKind.INVALID_EMAIL,
    'email_not_confirmed': AuthErrorKind.EMAIL_NOT_CONFIRMED,
    'user_banned': AuthErrorKind.USER_DISABLED,
    'over_request_rate_limit': AuthErrorKind.TOO_MANY_REQUESTS,
    'over_email_send_rate_limit': AuthErrorKind.TOO_MANY_REQUESTS,
    'request_timeout': AuthErrorKind.NETWORK_FAILED,
}


def auth_error_kind(code: Optional[str]) -> AuthErrorKind:
    if not code:
        return AuthErrorKind.UNKNOWN
    code = str(code)
    if code in _PROVIDER_CODES:
        return _PROVIDER_CODES[code]
    # Codes already in our own vocabulary, with or without an "auth/" prefix
    try:
        return AuthErrorKind(code.removeprefix('auth/'))
    except ValueError:
        return AuthErrorKind.UNKNOWN


def auth_error_message(kind: AuthErrorKind) -> str:
    return AUTH_ERROR_MESSAGES.get(kind, DEFAULT_AUTH_ERROR_MESSAGE)
