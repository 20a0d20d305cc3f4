from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cookie_relay.auth_service import AuthService
from cookie_relay.errors import (
    DEFAULT_AUTH_ERROR_MESSAGE, AuthErrorKind, AuthFailure, ServiceUnavailable, auth_error_kind,
    auth_error_message,
)


class ProviderError(Exception):

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


@pytest.fixture
def supabase():
    return MagicMock()


@pytest.mark.parametrize("code,kind", [
    ("invalid_credentials", AuthErrorKind.INVALID_CREDENTIALS),
    ("user_already_exists", AuthErrorKind.EMAIL_IN_USE),
    ("weak_password", AuthErrorKind.WEAK_PASSWORD),
    ("auth/user-not-found", AuthErrorKind.USER_NOT_FOUND),
    ("wrong-password", AuthErrorKind.WRONG_PASSWORD),
    ("something_new", AuthErrorKind.UNKNOWN),
    (None, AuthErrorKind.UNKNOWN),
])
def test_auth_error_kind(code, kind):
    assert auth_error_kind(code) == kind


def test_unknown_kind_uses_default_message():
    assert auth_error_message(AuthErrorKind.UNKNOWN) == DEFAULT_AUTH_ERROR_MESSAGE
    assert auth_error_message(AuthErrorKind.WEAK_PASSWORD) == 'Password should be at least 6 characters'


def test_unconfigured_service_is_unavailable():
    service = AuthService(None)
    with pytest.raises(ServiceUnavailable):
        service.sign_in("ada@example.com", "hunter22")
    with pytest.raises(ServiceUnavailable):
        service.reset_password("ada@example.com")


def test_sign_in_failure_keeps_provider_code(supabase):
    supabase.auth.sign_in_with_password.side_effect = ProviderError("Email not confirmed", "email_not_confirmed")

    with pytest.raises(AuthFailure) as exc:
        AuthService(supabase).sign_in("ada@example.com", "hunter22")

    assert exc.value.status_code == 401
    assert exc.value.message == 'Please confirm your email address before signing in'
    assert exc.value.code == "email_not_confirmed"


def test_failure_without_code_falls_back_to_default(supabase):
    supabase.auth.reset_password_for_email.side_effect = RuntimeError("boom")

    with pytest.raises(AuthFailure) as exc:
        AuthService(supabase).reset_password("ada@example.com")

    assert exc.value.status_code == 400
    assert exc.value.message == DEFAULT_AUTH_ERROR_MESSAGE
    assert exc.value.code == AuthErrorKind.UNKNOWN.value


def test_sign_up_passes_display_name(supabase):
    supabase.auth.sign_up.return_value = SimpleNamespace(
        user=SimpleNamespace(id="u1", email="ada@example.com", user_metadata={}),
        session=None,
    )

    result = AuthService(supabase).sign_up("ada@example.com", "hunter22", "Ada")

    supabase.auth.sign_up.assert_called_once_with({
        "email": "ada@example.com",
        "password": "hunter22",
        "options": {"data": {"display_name": "Ada"}},
    })
    assert result.uid == "u1"
    assert result.display_name == "Ada"
    # Email confirmation pending: no session yet
    assert result.token is None
    assert result.refresh_token is None


def test_sign_up_without_user_is_rejected(supabase):
    supabase.auth.sign_up.return_value = SimpleNamespace(user=None, session=None)

    with pytest.raises(AuthFailure) as exc:
        AuthService(supabase).sign_up("ada@example.com", "hunter22")

    assert exc.value.status_code == 400


def test_sign_out_failure_is_server_error(supabase):
    supabase.auth.admin.sign_out.side_effect = RuntimeError("network down")

    with pytest.raises(AuthFailure) as exc:
        AuthService(supabase).sign_out("token")

    assert exc.value.status_code == 500
