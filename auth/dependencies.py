"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Sessions are bearer JWTs sent as `Authorization: Bearer <token>`. There is
no cookie and no server-side session; logout is the client discarding its
token.

get_auth_service() hands routes the AuthService built once in the app
lifespan. get_current_user() resolves the bearer token to a UserProfile and
raises HTTP 401 (missing, invalid or expired token) or 404 (account deleted
since the token was issued).

Layer rule: auth/dependencies.py may import from fastapi (for Depends /
HTTPException / Request) because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import AuthError
from auth.models import UserProfile
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request) -> UserProfile:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: UserProfile = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return get_auth_service(request).authenticate(token)
    except AuthError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None,
        ) from exc
