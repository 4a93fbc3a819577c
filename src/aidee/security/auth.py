from __future__ import annotations

"""Identity provider adapters.

This module provides:
- Pydantic models for users, sessions and login payloads
- IdentityProvider protocol (password sign-in, OAuth start, code exchange, user lookup)
- LocalIdentityProvider: in-memory dev users with JWT access tokens
- SupabaseIdentityProvider: the hosted auth service over its REST API (PKCE OAuth)

Env vars:
- AIDEE_AUTH_IMPL (local|supabase, default local)
- JWT_SECRET (local provider; default for dev)
- JWT_EXPIRES_MIN (default 60)
- AIDEE_DEV_OAUTH_EMAIL (local provider: account returned by the OAuth flow)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol
from urllib.parse import urlencode
import base64
import hashlib
import logging
import os
import secrets
import uuid

import jwt
import requests
from pydantic import BaseModel, EmailStr, Field, ValidationError

from ..config import Settings
from ..infrastructure.http import DEFAULT_TIMEOUT, build_session


logger = logging.getLogger("aidee.auth")

SUPPORTED_OAUTH_PROVIDERS = ("google",)


class AuthError(RuntimeError):
    pass


def _get_env(name: str, default: Optional[str] = None) -> str:
    val = os.getenv(name, default)
    if val is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return val


@dataclass
class JwtConfig:
    secret: str
    algorithm: str = "HS256"
    expires_min: int = 60

    @staticmethod
    def from_env() -> "JwtConfig":
        secret = _get_env("JWT_SECRET", "dev-secret-change-me")
        expires = int(os.getenv("JWT_EXPIRES_MIN", "60"))
        return JwtConfig(secret=secret, expires_min=expires)


class User(BaseModel):
    id: str
    email: EmailStr
    name: str = ""


class AuthSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int
    user: User


class PasswordLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


@dataclass
class OAuthStart:
    url: str
    code_verifier: Optional[str] = None


class IdentityProvider(Protocol):
    def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart: ...

    def exchange_code_for_session(self, code: str, code_verifier: Optional[str] = None) -> AuthSession: ...

    def get_user(self, access_token: str) -> User: ...


def _hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), 100_000)
    return digest.hex()


@dataclass
class _LocalUser:
    id: str
    email: str
    name: str
    salt: str
    password_hash: str


@dataclass
class _PendingCode:
    email: str
    code_verifier: str
    expires_at: datetime


@dataclass
class LocalIdentityProvider:
    """Development identity provider backed by process memory.

    The OAuth flow is simulated: the authorize URL points straight back at
    ``redirect_to`` with a one-time code for the configured dev account.
    """

    jwt_config: Optional[JwtConfig] = None
    code_ttl: timedelta = timedelta(minutes=5)
    _users: Dict[str, _LocalUser] = field(default_factory=dict)
    _codes: Dict[str, _PendingCode] = field(default_factory=dict)

    def _cfg(self) -> JwtConfig:
        return self.jwt_config or JwtConfig.from_env()

    def register_user(self, email: str, password: str, name: str = "") -> User:
        email_l = email.lower()
        if email_l in self._users:
            raise ValueError("User already exists")
        salt = secrets.token_hex(8)
        rec = _LocalUser(
            id=str(uuid.uuid4()),
            email=email_l,
            name=name,
            salt=salt,
            password_hash=_hash_password(password, salt),
        )
        self._users[email_l] = rec
        return User(id=rec.id, email=rec.email, name=rec.name)

    def _issue(self, rec: _LocalUser) -> AuthSession:
        cfg = self._cfg()
        now = datetime.now(timezone.utc)
        exp = now + timedelta(minutes=cfg.expires_min)
        payload = {
            "sub": rec.id,
            "email": rec.email,
            "name": rec.name,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        token = jwt.encode(payload, cfg.secret, algorithm=cfg.algorithm)
        return AuthSession(
            access_token=token,
            expires_in=cfg.expires_min * 60,
            user=User(id=rec.id, email=rec.email, name=rec.name),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        rec = self._users.get(email.lower())
        if rec is None or not secrets.compare_digest(rec.password_hash, _hash_password(password, rec.salt)):
            raise AuthError("Invalid login credentials")
        logger.info("password sign-in user_id=%s", rec.id)
        return self._issue(rec)

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart:
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise AuthError(f"Unsupported OAuth provider: {provider}")
        email = os.getenv("AIDEE_DEV_OAUTH_EMAIL", DEV_OAUTH_EMAIL).lower()
        if email not in self._users:
            raise AuthError("OAuth account not registered")
        code = secrets.token_urlsafe(24)
        verifier = secrets.token_urlsafe(48)
        self._codes[code] = _PendingCode(
            email=email,
            code_verifier=verifier,
            expires_at=datetime.now(timezone.utc) + self.code_ttl,
        )
        sep = "&" if "?" in redirect_to else "?"
        return OAuthStart(url=f"{redirect_to}{sep}{urlencode({'code': code})}", code_verifier=verifier)

    def exchange_code_for_session(self, code: str, code_verifier: Optional[str] = None) -> AuthSession:
        pending = self._codes.pop(code, None)
        if pending is None:
            raise AuthError("Invalid or already used code")
        if pending.expires_at < datetime.now(timezone.utc):
            raise AuthError("Code expired")
        if code_verifier is not None and not secrets.compare_digest(code_verifier, pending.code_verifier):
            raise AuthError("Code verifier mismatch")
        rec = self._users.get(pending.email)
        if rec is None:
            raise AuthError("OAuth account not registered")
        return self._issue(rec)

    def get_user(self, access_token: str) -> User:
        cfg = self._cfg()
        try:
            data = jwt.decode(access_token, cfg.secret, algorithms=[cfg.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("Invalid token") from exc
        return User(id=data["sub"], email=data["email"], name=data.get("name", ""))


def _pkce_pair() -> tuple[str, str]:
    verifier = secrets.token_urlsafe(64)
    challenge = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest()).decode("ascii").rstrip("=")
    return verifier, challenge


class SupabaseIdentityProvider:
    """Hosted auth service client (GoTrue REST endpoints)."""

    def __init__(self, base_url: str, anon_key: str, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._session = session or build_session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseIdentityProvider":
        if not settings.store_url or not settings.store_anon_key:
            raise AuthError("Hosted auth not configured (SUPABASE_URL and SUPABASE_ANON_KEY are required)")
        return cls(settings.store_url, settings.store_anon_key)

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._anon_key}",
            "Content-Type": "application/json",
        }

    def _token(self, grant_type: str, body: Dict[str, str]) -> AuthSession:
        try:
            resp = self._session.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": grant_type},
                json=body,
                headers=self._headers(),
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise AuthError(f"auth service unreachable: {exc}") from exc
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error_description") or resp.json().get("msg")
            except ValueError:
                detail = resp.text
            raise AuthError(detail or f"auth failed ({resp.status_code})")
        data = resp.json()
        return AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or 3600),
            user=self._to_user(data.get("user") or {}),
        )

    @staticmethod
    def _to_user(raw: Dict[str, object]) -> User:
        meta = raw.get("user_metadata") or {}
        name = ""
        if isinstance(meta, dict):
            name = str(meta.get("full_name") or meta.get("name") or "")
        try:
            return User(id=str(raw.get("id", "")), email=str(raw.get("email", "")), name=name)
        except ValidationError as exc:
            raise AuthError("Malformed user payload from auth service") from exc

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        return self._token("password", {"email": email, "password": password})

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> OAuthStart:
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise AuthError(f"Unsupported OAuth provider: {provider}")
        verifier, challenge = _pkce_pair()
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": challenge,
                "code_challenge_method": "s256",
            }
        )
        return OAuthStart(url=f"{self.base_url}/auth/v1/authorize?{query}", code_verifier=verifier)

    def exchange_code_for_session(self, code: str, code_verifier: Optional[str] = None) -> AuthSession:
        if not code_verifier:
            raise AuthError("Missing code verifier")
        return self._token("pkce", {"auth_code": code, "code_verifier": code_verifier})

    def get_user(self, access_token: str) -> User:
        try:
            resp = self._session.get(
                f"{self.base_url}/auth/v1/user",
                headers=self._headers(access_token),
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise AuthError(f"auth service unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise AuthError("Invalid token")
        return self._to_user(resp.json())


# In-memory dev accounts for the local provider (email, password, name)
DEV_OAUTH_EMAIL = "demo@aidee.app"
DEV_USERS = (
    (DEV_OAUTH_EMAIL, "aidee-demo", "홍길동"),
    ("maker@aidee.app", "maker-pass", "Maker"),
)


_provider: IdentityProvider | None = None


def get_identity_provider() -> IdentityProvider:
    global _provider
    if _provider is not None:
        return _provider
    settings = Settings.from_env()
    if settings.auth_impl == "supabase":
        _provider = SupabaseIdentityProvider.from_settings(settings)
        return _provider
    local = LocalIdentityProvider()
    for email, password, name in DEV_USERS:
        local.register_user(email, password, name)
    _provider = local
    return _provider
