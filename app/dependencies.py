"""Authentication dependencies and cookie helpers for FastAPI routes."""

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.services.auth import get_auth_service
from app.services.jwt import REMEMBER_SCOPE, SESSION_SCOPE, get_jwt_service
from app.services.users import get_user_service

SESSION_COOKIE_NAME = "sa_session"
REMEMBER_USER_COOKIE_NAME = "sa_remember_user"
REMEMBER_TOKEN_COOKIE_NAME = "sa_remember_token"

# request.state attribute naming a user restored from the remember-me cookies
REMEMBERED_USER_STATE = "remembered_user_id"


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def resolve_current_user(request: Request, db: Session) -> User | None:
    """Find the logged-in user from the Bearer header, the session cookie or the remember-me cookies."""
    jwt_service = get_jwt_service()
    users = get_user_service()

    session_token = _bearer_token(request) or request.cookies.get(SESSION_COOKIE_NAME)
    user_id = jwt_service.user_id_from_token(session_token, SESSION_SCOPE)
    if user_id is not None:
        return users.get_user(db, user_id)

    user_id = jwt_service.user_id_from_token(request.cookies.get(REMEMBER_USER_COOKIE_NAME), REMEMBER_SCOPE)
    if user_id is None:
        return None
    user = users.get_user(db, user_id)
    if user and get_auth_service().validate_remember_token(user, request.cookies.get(REMEMBER_TOKEN_COOKIE_NAME)):
        setattr(request.state, REMEMBERED_USER_STATE, user.id)
        return user
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Require an authenticated user. Raises 401 if there is none."""
    user = resolve_current_user(request, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    """Logged-in user, or None for anonymous requests."""
    return resolve_current_user(request, db)


def require_web_auth(request: Request, db: Session = Depends(get_db)) -> User:
    """Require authentication for web routes. Raises 401 to trigger redirect."""
    user = resolve_current_user(request, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Please log in.")
    return user


def set_session_cookie(response: Response, user: User) -> None:
    """Log the user in for this browser session."""
    _set_session_cookie(response, user.id)


def _set_session_cookie(response: Response, user_id: int) -> None:
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=get_jwt_service().create_token(user_id, SESSION_SCOPE),
        httponly=True,
        samesite="lax",
        secure=settings.APP_ENV == "production",
        max_age=settings.JWT_EXPIRE_MINUTES * 60,
    )


def set_remember_cookies(response: Response, user: User, remember_token: str) -> None:
    """Persist the login across browser restarts."""
    settings = get_settings()
    max_age = settings.REMEMBER_COOKIE_DAYS * 24 * 60 * 60
    for key, value in (
        (REMEMBER_USER_COOKIE_NAME, get_jwt_service().create_token(user.id, REMEMBER_SCOPE)),
        (REMEMBER_TOKEN_COOKIE_NAME, remember_token),
    ):
        response.set_cookie(
            key=key,
            value=value,
            httponly=True,
            samesite="lax",
            secure=settings.APP_ENV == "production",
            max_age=max_age,
        )


def clear_remember_cookies(response: Response) -> None:
    """Remove the remember-me cookies."""
    response.delete_cookie(key=REMEMBER_USER_COOKIE_NAME)
    response.delete_cookie(key=REMEMBER_TOKEN_COOKIE_NAME)


def clear_auth_cookies(response: Response) -> None:
    """Remove every authentication cookie."""
    response.delete_cookie(key=SESSION_COOKIE_NAME)
    clear_remember_cookies(response)


def log_in(db: Session, response: Response, user: User, remember: bool = False) -> str | None:
    """Start a session for ``user``. Returns the remember token when ``remember`` is set.

    Logging in without "remember me" forgets any earlier persistent session.
    """
    auth_service = get_auth_service()
    set_session_cookie(response, user)
    if remember:
        token = auth_service.issue_remember_token(db, user)
        set_remember_cookies(response, user, token)
        return token
    auth_service.forget_user(db, user)
    clear_remember_cookies(response)
    return None


def log_out(db: Session, response: Response, user: User | None) -> None:
    """End the session and any persistent session."""
    if user is not None:
        get_auth_service().forget_user(db, user)
    clear_auth_cookies(response)


def refresh_remembered_session(request: Request, response: Response) -> None:
    """Start a session for a user who was logged in through the remember-me cookies.

    Later requests then carry the session cookie and skip the remember digest check.
    Responses that already set or delete the session cookie are left alone.
    """
    user_id = getattr(request.state, REMEMBERED_USER_STATE, None)
    if user_id is None:
        return
    if any(header.startswith(f"{SESSION_COOKIE_NAME}=") for header in response.headers.getlist("set-cookie")):
        return
    _set_session_cookie(response, user_id)
