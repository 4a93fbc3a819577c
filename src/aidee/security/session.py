from __future__ import annotations

"""Per-request session context.

Handlers never read ambient auth state: a SessionContext is resolved from the
incoming request (cookie or bearer token) and passed in as a dependency, and
new sessions are attached to the outgoing response explicitly.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.responses import Response

from ..config import Settings
from .auth import AuthError, AuthSession, IdentityProvider, User, get_identity_provider


ACCESS_COOKIE = "aidee-access-token"
REFRESH_COOKIE = "aidee-refresh-token"
VERIFIER_COOKIE = "aidee-code-verifier"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionContext:
    user: User
    access_token: str


def _token_from_request(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds is not None and creds.scheme and creds.scheme.lower() == "bearer" and creds.credentials:
        return creds.credentials
    return request.cookies.get(ACCESS_COOKIE) or None


def resolve_session(
    request: Request,
    provider: IdentityProvider,
    creds: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[SessionContext]:
    token = _token_from_request(request, creds)
    if not token:
        return None
    try:
        user = provider.get_user(token)
    except AuthError:
        return None
    return SessionContext(user=user, access_token=token)


def attach_session(response: Response, auth_session: AuthSession, settings: Optional[Settings] = None) -> Response:
    settings = settings or Settings.from_env()
    response.set_cookie(
        ACCESS_COOKIE,
        auth_session.access_token,
        max_age=auth_session.expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    if auth_session.refresh_token:
        response.set_cookie(
            REFRESH_COOKIE,
            auth_session.refresh_token,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
            path="/",
        )
    return response


def clear_session(response: Response) -> Response:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")
    return response


def optional_session(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[SessionContext]:
    return resolve_session(request, provider, creds)


def require_session(session: Optional[SessionContext] = Depends(optional_session)) -> SessionContext:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return session
