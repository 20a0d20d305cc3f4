import logging
from typing import Any, Optional

from supabase import Client

from .errors import AuthFailure, ServiceUnavailable, auth_error_kind, auth_error_message
from .views import AuthResult

logger = logging.getLogger(__name__)


class AuthService:
    """Email/password authentication against Supabase Auth.

    Provider errors are turned into AuthFailure carrying a human-readable
    message; the provider's own error code is kept on ``AuthFailure.code``.
    """

    def __init__(self, supabase_client: Optional[Client]):
        self.supabase = supabase_client

    def _auth(self):
        if self.supabase is None:
            raise ServiceUnavailable('Authentication service not configured')
        return self.supabase.auth

    def sign_in(self, email: str, password: str) -> AuthResult:
        auth = self._auth()
        try:
            response = auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            raise self._failure('Sign in', e) from e
        logger.info(f"User signed in: {response.user.id}")
        return self._result(response)

    def sign_up(self, email: str, password: str, display_name: str = '') -> AuthResult:
        auth = self._auth()
        credentials: dict = {"email": email, "password": password}
        if display_name:
            credentials["options"] = {"data": {"display_name": display_name}}
        try:
            response = auth.sign_up(credentials)
        except Exception as e:
            raise self._failure('Sign up', e, status_code=400) from e
        if response.user is None:
            raise AuthFailure(auth_error_message(auth_error_kind(None)), status_code=400)
        logger.info(f"User signed up: {response.user.id}")
        return self._result(response, display_name=display_name)

    def sign_out(self, access_token: str) -> None:
        """Revoke the session the given access token belongs to."""
        auth = self._auth()
        try:
            auth.admin.sign_out(access_token)
        except Exception as e:
            raise self._failure('Sign out', e, status_code=500) from e

    def reset_password(self, email: str) -> None:
        auth = self._auth()
        try:
            auth.reset_password_for_email(email)
        except Exception as e:
            raise self._failure('Password reset', e, status_code=400) from e

    @staticmethod
    def _result(response: Any, display_name: str = '') -> AuthResult:
        user = response.user
        session = response.session
        metadata = getattr(user, 'user_metadata', None) or {}
        return AuthResult(
            uid=user.id,
            email=user.email,
            display_name=metadata.get('display_name') or display_name or None,
            token=session.access_token if session else None,
            refresh_token=session.refresh_token if session else None,
        )

    @staticmethod
    def _failure(action: str, error: Exception, status_code: Optional[int] = None) -> AuthFailure:
        code = getattr(error, 'code', None)
        kind = auth_error_kind(code)
        logger.warning(f"{action} error: {type(error).__name__}: {error} (code={code})")
        return AuthFailure(auth_error_message(kind), code=code or kind.value, status_code=status_code)
