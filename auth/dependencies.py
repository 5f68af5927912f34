"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Per-request state machine implemented by get_current_user():

  no "Authorization: Bearer <token>" header  -> 401
  token present, signature/expiry invalid     -> 403
  token valid, principal missing or inactive  -> 401
  token valid, principal active               -> User handed to the route

try_get_current_user() is the soft variant (returns None on any failure).
require_permission(action) wraps get_current_user() and raises HTTP 403 when
the access policy denies the principal's role.

Layer rule: no imports from api/ or market/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import User
from auth.policy import Action, can_perform
from auth.store import UserStore
from auth.tokens import verify_token

logger = logging.getLogger("automarket.auth")

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_current_user(request: Request) -> User:
    """Require an authenticated, active principal.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "No token provided."},
        )

    user_id = verify_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=403,
            detail={"code": "invalid_token", "message": "Invalid or expired token."},
        )

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None or not user.is_active:
        logger.info("Rejected token for missing or inactive user %s", user_id)
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "User not found or inactive."},
        )
    return user


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated principal, or None on any failure. Never raises."""
    try:
        return get_current_user(request)
    except HTTPException:
        return None


def require_permission(action: Action) -> Callable[[Request], User]:
    """Build a dependency that authenticates and then checks the access policy.

    Use as a FastAPI dependency:
        @router.post("/vehicles")
        def route(user: User = Depends(require_permission(Action.manage_vehicles))): ...
    """

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if not can_perform(user.role, action):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "You are not allowed to perform this action."},
            )
        return user

    return dependency
