"""Pytest configuration and fixtures."""
import os
import sys
import time

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import jwt
import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from cookie_relay.api import create_app
from cookie_relay.config import Settings
from cookie_relay.context import AppContext

JWT_SECRET = "testsecret"


@pytest.fixture
def settings():
    return Settings(jwt_secret=JWT_SECRET, rate_limit_max=1000)


@pytest.fixture
def auth_client():
    """Stand-in for the Supabase client; only its .auth surface is used."""
    return MagicMock()


@pytest.fixture
def context(settings, auth_client):
    return AppContext.in_memory(settings, auth_client=auth_client)


@pytest.fixture
def client(context):
    with TestClient(create_app(context=context)) as c:
        yield c


@pytest.fixture
def make_token():
    def _make(sub="user-1", secret=JWT_SECRET, expires_in=3600, **claims):
        now = int(time.time())
        payload = {"sub": sub, "aud": "authenticated", "iat": now, "exp": now + expires_in, **claims}
        if sub is None:
            payload.pop("sub")
        return jwt.encode(payload, secret, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    return {"Authorization": f"Bearer {make_token()}"}
