"""
Current-user lookup.

Authentication itself is delegated to a fronting auth proxy, which forwards the
authenticated user's id in the `X-Auth-User` header. Routes only ever trust
that id, never one from the request body.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request

AUTH_HEADER = "X-Auth-User"


@dataclass(frozen=True)
class AuthUser:
    id: str


def get_current_user(request: Request) -> AuthUser | None:
    """Return the authenticated user, or ``None``."""
    user_id = (request.headers.get(AUTH_HEADER) or "").strip()
    return AuthUser(id=user_id) if user_id else None


def require_user(request: Request) -> AuthUser:
    """Raise 401 if no user is logged in."""
    user = get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail={"code": "UNAUTHENTICATED", "message": "Not authenticated"})
    return user
