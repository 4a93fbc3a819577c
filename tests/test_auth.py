from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from src.aidee.api.main import app
from src.aidee.security import rate_limit
from src.aidee.security.session import ACCESS_COOKIE, VERIFIER_COOKIE
from tests.utils import DEMO_EMAIL, demo_headers, password_login


def test_password_login_sets_session_cookie_and_me_works():
    client = TestClient(app)
    headers, data = password_login(client)
    assert data["user"]["email"] == DEMO_EMAIL
    assert client.cookies.get(ACCESS_COOKIE)

    # Cookie alone authenticates
    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["name"] == "홍길동"

    # Bearer header works on a cookie-less client too
    other = TestClient(app)
    assert other.get("/auth/me", headers=headers).status_code == 200


def test_wrong_password_is_401():
    client = TestClient(app)
    r = client.post("/auth/login", json={"email": DEMO_EMAIL, "password": "nope"})
    assert r.status_code == 401


def test_me_without_or_with_bad_token_is_401():
    client = TestClient(app)
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_root_redirects_to_login_without_session():
    client = TestClient(app)
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"

    headers = demo_headers(client)
    r = client.get("/", headers=headers, follow_redirects=False)
    assert r.status_code == 200
    assert r.json()["user"]["email"] == DEMO_EMAIL


def test_oauth_flow_exchanges_code_and_lands_home():
    client = TestClient(app)
    start = client.get("/auth/oauth/google", follow_redirects=False)
    assert start.status_code == 303
    location = start.headers["location"]
    assert urlparse(location).path == "/auth/callback"
    assert "code" in parse_qs(urlparse(location).query)
    assert client.cookies.get(VERIFIER_COOKIE)

    done = client.get(location, follow_redirects=False)
    assert done.status_code == 303
    assert done.headers["location"] == "/"
    assert client.get("/auth/me").json()["email"] == DEMO_EMAIL


def test_callback_with_bad_or_missing_code_redirects_to_login_error():
    client = TestClient(app)
    r = client.get("/auth/callback?code=bogus", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login?error=auth_failed"

    r = client.get("/auth/callback", follow_redirects=False)
    assert r.headers["location"] == "/login?error=auth_failed"


def test_oauth_code_is_single_use():
    client = TestClient(app)
    location = client.get("/auth/oauth/google", follow_redirects=False).headers["location"]
    assert client.get(location, follow_redirects=False).headers["location"] == "/"
    assert client.get(location, follow_redirects=False).headers["location"] == "/login?error=auth_failed"


def test_unsupported_oauth_provider_is_404():
    client = TestClient(app)
    assert client.get("/auth/oauth/myspace", follow_redirects=False).status_code == 404


def test_logout_clears_cookie_session():
    client = TestClient(app)
    password_login(client)
    assert client.get("/auth/me").status_code == 200
    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_login_page_reports_error():
    client = TestClient(app)
    r = client.get("/login?error=auth_failed")
    assert r.status_code == 200
    assert r.json()["error"] == "auth_failed"
    assert "google" in r.json()["providers"]


def test_repeated_logins_are_rate_limited(monkeypatch):
    monkeypatch.setattr(rate_limit, "_rate_limiting_disabled", lambda: False)
    monkeypatch.setenv("LOGIN_LIMIT", "2")
    client = TestClient(app)
    body = {"email": DEMO_EMAIL, "password": "nope"}
    assert client.post("/auth/login", json=body).status_code == 401
    assert client.post("/auth/login", json=body).status_code == 401
    r = client.post("/auth/login", json=body)
    assert r.status_code == 429
    assert int(r.headers["Retry-After"]) >= 1
