"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST  /api/v1/auth/signup                  -- create account; returns token + user (201)
  POST  /api/v1/auth/login                   -- email/password login; returns token
  POST  /api/v1/auth/forgot-password         -- email a 10-minute reset link
  PATCH /api/v1/auth/reset-password/{token}  -- set a new password; returns fresh token
  GET   /api/v1/auth/me                      -- current user (requires auth)

Security:
  Login uses CredentialVerifier, which equalizes timing between unknown email
  and wrong password. Do NOT inline find_by_email() + correct_password().
  Token-bearing responses carry Cache-Control: no-store.
  Errors are raised as AuthError subclasses and rendered by api/main.py.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    UserDetailResponse,
    UserResponse,
)
from auth.credentials import CredentialVerifier
from auth.dependencies import get_current_user
from auth.models import User
from auth.reset import PasswordResetFlow
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("tourguard.api")

# Auth policy:
# - POST  /auth/signup, /auth/login, /auth/forgot-password:  public
# - PATCH /auth/reset-password/{token}:                      public (token is the credential)
# - GET   /auth/me:                                          requires auth (get_current_user)
router = APIRouter()


def _no_store(model, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=model.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create a user and log them in.

    The store validates every field and raises ValidationError (400) on bad
    input, including an email that is already registered.
    """
    store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.token_service

    user = store.create(
        {
            "name": body.name,
            "email": body.email,
            "role": body.role,
            "password": body.password,
            "password_confirm": body.password_confirm,
        }
    )
    logger.info("User %d signed up", user.id)
    return _no_store(SignupResponse(token=tokens.issue(user.id), user=UserResponse.from_user(user)), status_code=201)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 so the endpoint
    does not reveal which emails are registered.
    """
    verifier: CredentialVerifier = request.app.state.credential_verifier
    tokens: TokenService = request.app.state.token_service

    user = verifier.verify(body.email, body.password)
    return _no_store(LoginResponse(token=tokens.issue(user.id)))


@router.post("/auth/forgot-password", response_model=MessageResponse)
async def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Email a password reset link built from this request's scheme and host.

    404 for unknown emails, 500 if the email could not be sent (the reset
    token is withdrawn in that case).
    """
    flow: PasswordResetFlow = request.app.state.reset_flow
    base_url = f"{request.url.scheme}://{request.url.netloc}"
    await flow.request_reset(body.email, base_url)
    return MessageResponse(message="Token sent to email!")


@router.patch("/auth/reset-password/{token}", response_model=TokenResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    """Consume a reset token, set the new password and log the user in again.

    Every session token issued before this call becomes stale.
    """
    flow: PasswordResetFlow = request.app.state.reset_flow
    tokens: TokenService = request.app.state.token_service

    user = flow.complete_reset(token, body.password, body.password_confirm)
    return _no_store(TokenResponse(token=tokens.issue(user.id)))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserDetailResponse)
async def me(current_user: User = Depends(get_current_user)) -> UserDetailResponse:
    """Return the currently authenticated user."""
    return UserDetailResponse(user=UserResponse.from_user(current_user))
