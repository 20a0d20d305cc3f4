from fastapi.testclient import TestClient

from cookie_relay.api import create_app
from cookie_relay.config import Settings
from cookie_relay.context import AppContext
from cookie_relay.rate_limit import RATE_LIMIT_MESSAGE, create_limiter


def _client(**overrides):
    settings = Settings(jwt_secret="testsecret", **overrides)
    return TestClient(create_app(context=AppContext.in_memory(settings)))


def test_limiter_enabled_with_budget():
    limiter = create_limiter(Settings(rate_limit_max=5, rate_limit_window_seconds=60))
    assert limiter.enabled


def test_zero_disables_limiting():
    assert not create_limiter(Settings(rate_limit_max=0)).enabled


def test_api_routes_answer_429_past_the_budget(auth_headers):
    with _client(rate_limit_max=2) as c:
        assert c.get("/api/domains", headers=auth_headers).status_code == 200
        assert c.get("/api/domains", headers=auth_headers).status_code == 200

        r = c.get("/api/domains", headers=auth_headers)

    assert r.status_code == 429
    assert r.json() == {"success": False, "message": RATE_LIMIT_MESSAGE, "data": None, "error": None}


def test_health_is_exempt(auth_headers):
    with _client(rate_limit_max=1) as c:
        c.get("/api/domains", headers=auth_headers)
        assert c.get("/api/domains", headers=auth_headers).status_code == 429
        assert all(c.get("/health").status_code == 200 for _ in range(3))


def test_unlimited_when_disabled(auth_headers):
    with _client(rate_limit_max=0) as c:
        assert all(c.get("/api/domains", headers=auth_headers).status_code == 200 for _ in range(5))
