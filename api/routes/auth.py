"""
api/routes/auth.py -- Registration and login endpoints.

Routes:
  POST /api/auth/register   -- create an account; returns token + user (201)
  POST /api/auth/login      -- email/password login; returns token + user

Security:
  Both routes are rate-limited per client IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT).
  Login uses authenticate_user(), which equalizes timing between unknown
  emails and wrong passwords. Every login failure returns the same 401 body.
  Duplicate emails are rejected with 400; the UNIQUE index catches the race
  where two registrations for one email pass the pre-check together.
  Registering with an elevated role requires an admin bearer token, except
  for the very first account (bootstrap).
  Cache-Control: no-store on every credential-bearing response.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from auth.dependencies import try_get_current_user
from auth.models import User
from auth.policy import Action, Role, can_perform
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password, issue_token
from core.config import get_settings

logger = logging.getLogger("automarket.auth")

_settings = get_settings()

# Auth policy:
# - POST /api/auth/register: public (admin bearer optional, see _resolve_role)
# - POST /api/auth/login:    public
router = APIRouter()

_EMAIL_TAKEN = {"code": "email_taken", "message": "Email already in use."}
_FORBIDDEN = {"code": "forbidden", "message": "Only admins can assign roles."}


def _auth_response(user: User, status_code: int) -> JSONResponse:
    body = AuthResponse(token=issue_token(user.id), user=UserResponse.from_entity(user))
    resp = JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _resolve_role(request: Request, user_store: UserStore, requested: Role | None) -> tuple[Role, bool]:
    """Return the role the new account gets and whether it bootstraps the store.

    A plain "user" needs no privileges. Anything else needs an admin caller,
    unless the store is empty and this account bootstraps the marketplace.
    The bootstrap case is settled again at insert time by create_first_user().
    """
    if requested is None or requested == Role.user:
        return Role.user, False
    if not user_store.has_users():
        return requested, True
    caller = try_get_current_user(request)
    if caller is None or not can_perform(caller.role, Action.manage_users):
        raise HTTPException(status_code=403, detail=_FORBIDDEN)
    return requested, False


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a principal and log it in."""
    user_store: UserStore = request.app.state.user_store

    if user_store.get_by_email(body.email) is not None:
        raise HTTPException(status_code=400, detail=_EMAIL_TAKEN)

    role, bootstrap = _resolve_role(request, user_store, body.role)
    new_user = User(
        username=body.username,
        email=body.email,
        hashed_password=hash_password(body.password),
        role=role.value,
    )
    try:
        user_id = user_store.create_first_user(new_user) if bootstrap else user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(status_code=400, detail=_EMAIL_TAKEN) from exc
    if user_id is None:
        # Another account landed between the emptiness check and the insert.
        raise HTTPException(status_code=403, detail=_FORBIDDEN)
    if bootstrap:
        logger.info("Bootstrapped first account with role %s", role.value)

    created = user_store.get_by_id(user_id)
    logger.info("Registered user %s (role=%s)", user_id, role.value)
    return _auth_response(created, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)  # brute-force mitigation
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Uses authenticate_user() for timing equalization. Do NOT inline
    get_by_email() + verify_password() -- that re-introduces the timing attack.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "bad_credentials", "message": "Invalid email or password."},
            headers={"Cache-Control": "no-store"},
        )
    return _auth_response(user, status_code=200)
