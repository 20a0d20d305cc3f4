import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Request

from .context import AppContext
from .errors import AuthFailure, ServiceUnavailable

# Set up logger
logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    user_id: str
    token: str
    email: Optional[str] = None
    name: Optional[str] = None


def get_context(req: Request) -> AppContext:
    return req.app.state.context


def get_current_user(req: Request, ctx: AppContext = Depends(get_context)) -> CurrentUser:
    """
    Verify the Supabase JWT bearer token and return the caller.
    Raises AuthFailure if authentication fails.
    """
    secret = ctx.settings.jwt_secret
    if not secret:
        raise ServiceUnavailable("Authentication service not configured")

    auth_header = req.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthFailure("No authentication token provided")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise AuthFailure("No authentication token provided")

    try:
        # Supabase access tokens carry aud="authenticated"
        payload = jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})
    except jwt.ExpiredSignatureError:
        raise AuthFailure("Token has expired", code="token-expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Token verification failed: {e}")
        raise AuthFailure("Invalid or expired authentication token", code="invalid-token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthFailure("User ID not found in token", code="invalid-token")

    metadata = payload.get("user_metadata") or {}
    return CurrentUser(
        user_id=user_id,
        token=token,
        email=payload.get("email"),
        name=metadata.get("display_name") or payload.get("name"),
    )
