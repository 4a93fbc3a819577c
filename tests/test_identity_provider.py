from urllib.parse import parse_qs, urlparse

import pytest

from src.aidee.security.auth import AuthError, LocalIdentityProvider, SupabaseIdentityProvider
from tests.utils import FakeResponse, FakeSession


def _gotrue_session(email="demo@aidee.app"):
    return {
        "access_token": "at",
        "refresh_token": "rt",
        "expires_in": 3600,
        "user": {"id": "u1", "email": email, "user_metadata": {"full_name": "홍길동"}},
    }


def test_local_provider_password_and_token_round_trip():
    provider = LocalIdentityProvider()
    provider.register_user("a@b.co", "pw", "A")
    sess = provider.sign_in_with_password("A@B.co", "pw")
    assert provider.get_user(sess.access_token).email == "a@b.co"
    with pytest.raises(AuthError):
        provider.sign_in_with_password("a@b.co", "wrong")
    with pytest.raises(ValueError):
        provider.register_user("a@b.co", "pw")


def test_local_provider_rejects_verifier_mismatch(monkeypatch):
    monkeypatch.setenv("AIDEE_DEV_OAUTH_EMAIL", "a@b.co")
    provider = LocalIdentityProvider()
    provider.register_user("a@b.co", "pw")
    start = provider.sign_in_with_oauth("google", "http://app/auth/callback")
    code = parse_qs(urlparse(start.url).query)["code"][0]
    with pytest.raises(AuthError):
        provider.exchange_code_for_session(code, "wrong-verifier")


def test_supabase_password_sign_in_maps_session():
    session = FakeSession([FakeResponse(200, _gotrue_session())])
    provider = SupabaseIdentityProvider("https://x.supabase.co", "anon", session=session)
    auth = provider.sign_in_with_password("demo@aidee.app", "pw")
    assert auth.user.name == "홍길동"
    assert auth.refresh_token == "rt"
    call = session.calls[0]
    assert call["url"] == "https://x.supabase.co/auth/v1/token"
    assert call["params"] == {"grant_type": "password"}


def test_supabase_oauth_uses_pkce_and_exchanges_code():
    session = FakeSession([FakeResponse(200, _gotrue_session())])
    provider = SupabaseIdentityProvider("https://x.supabase.co", "anon", session=session)
    start = provider.sign_in_with_oauth("google", "http://app/auth/callback")
    query = parse_qs(urlparse(start.url).query)
    assert query["provider"] == ["google"]
    assert query["code_challenge_method"] == ["s256"]
    assert start.code_verifier

    provider.exchange_code_for_session("abc", start.code_verifier)
    call = session.calls[0]
    assert call["params"] == {"grant_type": "pkce"}
    assert call["json"] == {"auth_code": "abc", "code_verifier": start.code_verifier}

    with pytest.raises(AuthError):
        provider.exchange_code_for_session("abc", None)


def test_supabase_errors_surface_as_auth_errors():
    session = FakeSession([FakeResponse(400, {"error_description": "Invalid login credentials"})])
    provider = SupabaseIdentityProvider("https://x.supabase.co", "anon", session=session)
    with pytest.raises(AuthError, match="Invalid login credentials"):
        provider.sign_in_with_password("demo@aidee.app", "bad")

    session = FakeSession([FakeResponse(401, {})])
    provider = SupabaseIdentityProvider("https://x.supabase.co", "anon", session=session)
    with pytest.raises(AuthError):
        provider.get_user("expired")

    session = FakeSession([FakeResponse(200, {"id": "u1", "email": "not-an-email"})])
    provider = SupabaseIdentityProvider("https://x.supabase.co", "anon", session=session)
    with pytest.raises(AuthError):
        provider.get_user("tok")
