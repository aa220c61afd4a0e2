"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, get_optional_user, log_in, log_out, set_session_cookie
from app.exceptions import AuthError, ValidationFailed
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.auth import (
    ActivateRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SessionResponse,
)
from app.schemas.user import UserResponse
from app.services.auth import get_auth_service
from app.services.jwt import get_jwt_service

logger = logging.getLogger("sample_app")

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _session_response(user: User, remember_token: str | None = None) -> SessionResponse:
    return SessionResponse(
        token=get_jwt_service().create_token(user.id),
        user_id=user.id,
        email=user.email,
        name=user.name,
        activated=user.activated,
        remember_token=remember_token,
    )


@router.post("/login", response_model=SessionResponse)
@limiter.limit("10/minute")
def login(request: Request, response: Response, body: LoginRequest, db: Session = Depends(get_db)) -> SessionResponse:
    """Authenticate and receive a session token, plus a remember token when requested."""
    auth_service = get_auth_service()
    try:
        user = auth_service.login(db, body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e)) from None

    remember_token = log_in(db, response, user, remember=body.remember_me)
    return _session_response(user, remember_token)


@router.post("/logout")
def logout(response: Response, user: User | None = Depends(get_optional_user), db: Session = Depends(get_db)) -> dict:
    """Forget the persistent session and clear auth cookies."""
    log_out(db, response, user)
    return {"detail": "Logged out"}


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(user)


@router.post("/activate", response_model=SessionResponse)
@limiter.limit("10/minute")
def activate(
    request: Request, response: Response, body: ActivateRequest, db: Session = Depends(get_db)
) -> SessionResponse:
    """Activate an account with the token from the activation email and log in."""
    auth_service = get_auth_service()
    try:
        user = auth_service.activate_with_token(db, body.email, body.token)
    except AuthError:
        raise HTTPException(status_code=400, detail="Invalid activation link") from None

    set_session_cookie(response, user)
    return _session_response(user)


@router.post("/forgot-password")
@limiter.limit("3/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> dict:
    """Request a password reset email."""
    auth_service = get_auth_service()
    user = auth_service.request_password_reset(db, body.email)
    if user is None:
        logger.info("Password reset requested for unknown email")

    return {"message": "If an account exists with that email, password reset instructions have been sent."}


@router.post("/reset-password", response_model=SessionResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request, response: Response, body: ResetPasswordRequest, db: Session = Depends(get_db)
) -> SessionResponse:
    """Reset password using a valid token. Logs the user in."""
    auth_service = get_auth_service()
    try:
        user = auth_service.reset_password(db, body.email, body.token, body.new_password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.messages) from None

    set_session_cookie(response, user)
    return _session_response(user)
