"""
api/routes/users.py -- Profile and user administration endpoints.

Routes:
  GET /api/users/me            -- current principal (requires auth)
  PUT /api/users/me            -- edit own username/email/password (requires auth)
  GET /api/users               -- list all users (admin only)
  GET /api/users/{id}          -- one user (admin only)
  PUT /api/users/{id}/role     -- change role (admin only)
  PUT /api/users/{id}/status   -- activate/deactivate (admin only)

Principals are never hard-deleted; deactivation is the removal path.

Guards on role/status changes:
  - An admin cannot deactivate their own account.
  - The last active admin cannot be demoted or deactivated.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.body import json_body
from api.models import ProfileUpdate, RoleUpdate, StatusUpdate, UserResponse
from auth.dependencies import require_permission
from auth.models import User
from auth.policy import Action, Role, UserStatus
from auth.store import UserStore, normalize_email
from auth.tokens import hash_password

logger = logging.getLogger("automarket.api")

router = APIRouter()

_require_admin = require_permission(Action.manage_users)


def _get_or_404(user_store: UserStore, user_id: str) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


def _guard_last_admin(user_store: UserStore, target: User) -> None:
    if target.role == Role.admin.value and target.is_active and user_store.count_active_admins() <= 1:
        raise HTTPException(
            status_code=400,
            detail={"code": "last_admin", "message": "Cannot remove the last active admin account."},
        )


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=UserResponse)
def get_me(current_user: User = Depends(require_permission(Action.view_profile))) -> UserResponse:
    return UserResponse.from_entity(current_user)


@router.put("/users/me", response_model=UserResponse)
def update_me(
    request: Request,
    current_user: User = Depends(require_permission(Action.edit_profile)),
    body: ProfileUpdate = Depends(json_body(ProfileUpdate)),
) -> UserResponse:
    """Update the caller's own profile. Role and status are not editable here."""
    user_store: UserStore = request.app.state.user_store

    updates: dict = {}
    if body.username is not None:
        updates["username"] = body.username
    if body.email is not None and normalize_email(body.email) != current_user.email:
        if user_store.get_by_email(body.email) is not None:
            raise HTTPException(
                status_code=400,
                detail={"code": "email_taken", "message": "Email already in use."},
            )
        updates["email"] = body.email
    if body.password is not None:
        updates["hashed_password"] = hash_password(body.password)

    if updates:
        try:
            user_store.update_user(current_user.id, **updates)
        except IntegrityError as exc:
            raise HTTPException(
                status_code=400,
                detail={"code": "email_taken", "message": "Email already in use."},
            ) from exc

    return UserResponse.from_entity(_get_or_404(user_store, current_user.id))


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, current_user: User = Depends(_require_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_entity(u) for u in user_store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str, current_user: User = Depends(_require_admin)) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return UserResponse.from_entity(_get_or_404(user_store, user_id))


@router.put("/users/{user_id}/role", response_model=UserResponse)
def update_role(
    request: Request,
    user_id: str,
    current_user: User = Depends(_require_admin),
    body: RoleUpdate = Depends(json_body(RoleUpdate)),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)

    if body.role != Role.admin:
        _guard_last_admin(user_store, target)

    user_store.update_user(user_id, role=body.role.value)
    logger.info("User %s role set to %s by %s", user_id, body.role.value, current_user.id)
    return UserResponse.from_entity(_get_or_404(user_store, user_id))


@router.put("/users/{user_id}/status", response_model=UserResponse)
def update_status(
    request: Request,
    user_id: str,
    current_user: User = Depends(_require_admin),
    body: StatusUpdate = Depends(json_body(StatusUpdate)),
) -> UserResponse:
    """Activate or deactivate an account.

    A deactivated principal's existing tokens stop working on the next request
    because the auth dependency reloads status from the store.
    """
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)

    if body.status == UserStatus.inactive:
        if target.id == current_user.id:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
            )
        _guard_last_admin(user_store, target)

    user_store.update_user(user_id, status=body.status.value)
    logger.info("User %s status set to %s by %s", user_id, body.status.value, current_user.id)
    return UserResponse.from_entity(_get_or_404(user_store, user_id))
