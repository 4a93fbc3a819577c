from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from ...config import Settings
from ...security.auth import (
    SUPPORTED_OAUTH_PROVIDERS,
    AuthError,
    IdentityProvider,
    PasswordLogin,
    User,
    get_identity_provider,
)
from ...security.rate_limit import RateLimitExceeded, rate_limit_action
from ...security.session import (
    VERIFIER_COOKIE,
    SessionContext,
    attach_session,
    clear_session,
    require_session,
)


logger = logging.getLogger("aidee.api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_FAILED_REDIRECT = "/login?error=auth_failed"


def _rate_limit_identifier(request: Request, email: str) -> str:
    host = request.client.host if request.client else "unknown"
    return f"{host}:{email.lower()}"


@router.post("/login")
def login(
    req: PasswordLogin,
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> JSONResponse:
    try:
        rate_limit_action(
            "password_login",
            _rate_limit_identifier(request, req.email),
            limit_env="LOGIN_LIMIT",
            window_env="LOGIN_WINDOW_SEC",
            default_limit=10,
            default_window_seconds=900,
        )
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many sign-in attempts. Please try again later.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        ) from exc

    try:
        auth_session = provider.sign_in_with_password(req.email, req.password)
    except AuthError as exc:
        logger.info("password sign-in rejected: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login credentials") from exc
    response = JSONResponse(
        content={
            "user": auth_session.user.model_dump(),
            "access_token": auth_session.access_token,
            "token_type": auth_session.token_type,
            "expires_in": auth_session.expires_in,
        }
    )
    return attach_session(response, auth_session, Settings.from_env())


@router.get("/oauth/{oauth_provider}")
def oauth_start(
    oauth_provider: str,
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> RedirectResponse:
    if oauth_provider not in SUPPORTED_OAUTH_PROVIDERS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unsupported OAuth provider")
    redirect_to = str(request.url_for("auth_callback"))
    try:
        start = provider.sign_in_with_oauth(oauth_provider, redirect_to)
    except AuthError as exc:
        logger.warning("oauth start failed provider=%s: %s", oauth_provider, exc)
        return RedirectResponse(LOGIN_FAILED_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)
    response = RedirectResponse(start.url, status_code=status.HTTP_303_SEE_OTHER)
    if start.code_verifier:
        response.set_cookie(
            VERIFIER_COOKIE,
            start.code_verifier,
            max_age=600,
            httponly=True,
            secure=Settings.from_env().cookie_secure,
            samesite="lax",
            path="/",
        )
    return response


@router.get("/callback", name="auth_callback")
def auth_callback(
    request: Request,
    code: Optional[str] = None,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> RedirectResponse:
    """Exchange the OAuth code for a session and land on the home page."""
    if not code:
        return RedirectResponse(LOGIN_FAILED_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)
    verifier = request.cookies.get(VERIFIER_COOKIE)
    try:
        auth_session = provider.exchange_code_for_session(code, verifier)
    except AuthError as exc:
        logger.warning("oauth code exchange failed: %s", exc)
        response = RedirectResponse(LOGIN_FAILED_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)
        response.delete_cookie(VERIFIER_COOKIE, path="/")
        return response
    logger.info("oauth sign-in user_id=%s", auth_session.user.id)
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(VERIFIER_COOKIE, path="/")
    return attach_session(response, auth_session, Settings.from_env())


@router.post("/logout")
def logout() -> JSONResponse:
    return clear_session(JSONResponse(content={"status": "signed_out"}))


@router.get("/me", response_model=User)
def me(session: SessionContext = Depends(require_session)) -> User:
    return session.user


login_router = APIRouter(tags=["auth"])


@login_router.get("/login")
def login_page(error: Optional[str] = None) -> dict:
    return {
        "providers": list(SUPPORTED_OAUTH_PROVIDERS),
        "password": True,
        "error": error,
    }
