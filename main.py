"""Sample App - microposts and followers."""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import get_db
from app.dependencies import (
    get_optional_user,
    log_in,
    log_out,
    refresh_remembered_session,
    require_web_auth,
    set_session_cookie,
)
from app.exceptions import AuthError, Expired, NotFound, ValidationFailed
from app.models.user import User
from app.rate_limit import limiter
from app.routers import auth_router, microposts_router, users_router
from app.services.auth import get_auth_service
from app.services.microposts import get_micropost_service
from app.services.relationships import get_relationship_service
from app.services.tokens import get_token_codec
from app.services.users import get_user_service

# Logging
logger = logging.getLogger("sample_app")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

INVALID_LOGIN = "Invalid email/password combination"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to serve authentication if no secure token can be generated.
    get_token_codec().new_token()
    for warning in get_settings().validate():
        logger.warning("CONFIG %s", warning)
    yield


app = FastAPI(title="Sample App", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; style-src 'self' 'unsafe-inline'; img-src 'self' data:; form-action 'self'"
        )
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 64 * 1024  # forms and JSON only

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(status_code=413, content={"detail": "Request body too large"})
        return await call_next(request)


# --- Remembered session middleware ---
class RememberedSessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        refresh_remembered_session(request, response)
        return response


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = {
        "/api/v1/auth/",
        "/api/v1/users/",
        "/login",
        "/signup",
        "/password_resets",
        "/account_activations",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        if method in ("POST", "PATCH", "DELETE") and any(path.startswith(p) for p in self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RememberedSessionMiddleware)
app.add_middleware(AuditLogMiddleware)

# Templates
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

# API routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(microposts_router)


# --- Rate limit error handler ---
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded. Try again later."})
    return HTMLResponse(content="<h1>429</h1><p>Too many requests. Please try again later.</p>", status_code=429)


# --- Exception handler: 401 -> redirect to /login ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Handle HTTP exceptions. Redirect 401 to login for web requests."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)
    if exc.status_code == 401:
        return RedirectResponse(url="/login", status_code=302)
    return HTMLResponse(
        content=f"<h1>{exc.status_code}</h1><p>{exc.detail}</p>",
        status_code=exc.status_code,
    )


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "sample-app", "version": "0.1.0"}


def _render(request: Request, template_name: str, current_user: User | None = None, **context) -> HTMLResponse:
    return templates.TemplateResponse(request, template_name, {"current_user": current_user, **context})


def _render_home(request: Request, db: Session, user: User | None, **context) -> HTMLResponse:
    feed = get_micropost_service().feed(db, user, limit=get_settings().FEED_PAGE_SIZE) if user else []
    return _render(request, "home.html", user, feed=feed, **context)


# --- Static pages ---
@app.get("/", response_class=HTMLResponse)
def home(
    request: Request,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render the home page; logged-in users see their feed."""
    return _render_home(request, db, user)


@app.get("/help", response_class=HTMLResponse)
def help_page(request: Request, user: User | None = Depends(get_optional_user)) -> HTMLResponse:
    """Render help page."""
    return _render(request, "help.html", user)


# --- Signup ---
@app.get("/signup", response_class=HTMLResponse)
def signup_page(request: Request) -> HTMLResponse:
    """Render signup page."""
    return _render(request, "signup.html")


@app.post("/signup", response_class=HTMLResponse)
@limiter.limit("5/minute")
def signup_submit(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Handle signup form submission."""
    errors: list[str] = []
    if password != password_confirmation:
        errors.append("Password confirmation doesn't match Password")
    if not errors:
        try:
            get_auth_service().register(db, name, email, password)
        except ValidationFailed as e:
            errors = e.messages
    if errors:
        return _render(request, "signup.html", errors=errors, name=name, email=email)

    return _render_home(request, db, None, info="Please check your email to activate your account.")


# --- Sessions ---
@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, user: User | None = Depends(get_optional_user)) -> HTMLResponse:
    """Render login page."""
    if user:
        return RedirectResponse(url=f"/users/{user.id}", status_code=302)  # type: ignore[return-value]
    return _render(request, "login.html")


@app.post("/login", response_class=HTMLResponse)
@limiter.limit("10/minute")
def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    remember_me: str | None = Form(None),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Handle login form submission."""
    try:
        user = get_auth_service().login(db, email, password)
    except AuthError:
        return _render(request, "login.html", error=INVALID_LOGIN, email=email)

    response = RedirectResponse(url=f"/users/{user.id}", status_code=302)
    log_in(db, response, user, remember=remember_me == "1")
    return response  # type: ignore[return-value]


@app.get("/logout")
def logout(user: User | None = Depends(get_optional_user), db: Session = Depends(get_db)) -> RedirectResponse:
    """Forget the user and redirect home."""
    response = RedirectResponse(url="/", status_code=302)
    log_out(db, response, user)
    return response


# --- Users ---
@app.get("/users/{user_id}", response_class=HTMLResponse)
def user_page(
    request: Request,
    user_id: int,
    viewer: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render a user's profile and microposts."""
    users = get_user_service()
    user = users.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    relationships = get_relationship_service()
    following_count, followers_count = relationships.counts(db, user)
    return _render(
        request,
        "user.html",
        viewer,
        user=user,
        microposts=users.get_user_microposts(db, user.id),
        following_count=following_count,
        followers_count=followers_count,
        is_following=bool(viewer) and relationships.is_following(db, viewer, user),
    )


@app.post("/users/{user_id}/follow")
def follow_submit(user_id: int, user: User = Depends(require_web_auth), db: Session = Depends(get_db)) -> RedirectResponse:
    """Follow a user from their profile page."""
    other = get_user_service().get_user(db, user_id)
    if not other:
        raise HTTPException(status_code=404, detail="User not found")
    get_relationship_service().follow(db, user, other)
    return RedirectResponse(url=f"/users/{other.id}", status_code=302)


@app.post("/users/{user_id}/unfollow")
def unfollow_submit(
    user_id: int, user: User = Depends(require_web_auth), db: Session = Depends(get_db)
) -> RedirectResponse:
    """Unfollow a user from their profile page."""
    other = get_user_service().get_user(db, user_id)
    if not other:
        raise HTTPException(status_code=404, detail="User not found")
    get_relationship_service().unfollow(db, user, other)
    return RedirectResponse(url=f"/users/{other.id}", status_code=302)


# --- Microposts ---
@app.post("/microposts", response_class=HTMLResponse)
def micropost_submit(
    request: Request,
    content: str = Form(""),
    user: User = Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Post a micropost from the home page."""
    try:
        get_micropost_service().create_micropost(db, user, content)
    except ValidationFailed as e:
        return _render_home(request, db, user, errors=e.messages, content=content)
    return RedirectResponse(url="/", status_code=302)  # type: ignore[return-value]


@app.post("/microposts/{micropost_id}/delete")
def micropost_delete(
    micropost_id: int, user: User = Depends(require_web_auth), db: Session = Depends(get_db)
) -> RedirectResponse:
    """Delete one of your own microposts."""
    try:
        get_micropost_service().delete_micropost(db, user, micropost_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Micropost not found") from None
    return RedirectResponse(url="/", status_code=302)


# --- Account activation ---
@app.get("/account_activations/{token}", response_class=HTMLResponse)
def account_activation(
    request: Request,
    token: str,
    email: str = "",
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Activate an account from the emailed link and log the user in."""
    try:
        user = get_auth_service().activate_with_token(db, email, token)
    except AuthError:
        return _render_home(request, db, None, error="Invalid activation link")

    response = RedirectResponse(url=f"/users/{user.id}", status_code=302)
    set_session_cookie(response, user)
    return response  # type: ignore[return-value]


# --- Password resets ---
@app.get("/password_resets/new", response_class=HTMLResponse)
def forgot_password_page(request: Request) -> HTMLResponse:
    """Render the password reset request form."""
    return _render(request, "forgot_password.html")


@app.post("/password_resets/new", response_class=HTMLResponse)
@limiter.limit("3/minute")
def forgot_password_submit(request: Request, email: str = Form(""), db: Session = Depends(get_db)) -> HTMLResponse:
    """Send password reset instructions. The reply never says whether the email exists."""
    get_auth_service().request_password_reset(db, email)
    return _render(
        request,
        "forgot_password.html",
        info="If an account exists with that email, password reset instructions have been sent.",
    )


@app.get("/password_resets/{token}", response_class=HTMLResponse)
def reset_password_page(
    request: Request,
    token: str,
    email: str = "",
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render the new-password form for a valid reset link."""
    try:
        get_auth_service().find_reset_user(db, email, token)
    except Expired as e:
        return _render(request, "forgot_password.html", error=str(e))
    except AuthError:
        return RedirectResponse(url="/", status_code=302)  # type: ignore[return-value]
    return _render(request, "reset_password.html", token=token, email=email)


@app.post("/password_resets/{token}", response_class=HTMLResponse)
@limiter.limit("5/minute")
def reset_password_submit(
    request: Request,
    token: str,
    email: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Set a new password through a reset link and log the user in."""
    if password != password_confirmation:
        return _render(
            request,
            "reset_password.html",
            token=token,
            email=email,
            errors=["Password confirmation doesn't match Password"],
        )
    try:
        user = get_auth_service().reset_password(db, email, token, password)
    except Expired as e:
        return _render(request, "forgot_password.html", error=str(e))
    except AuthError:
        return RedirectResponse(url="/", status_code=302)  # type: ignore[return-value]
    except ValidationFailed as e:
        return _render(request, "reset_password.html", token=token, email=email, errors=e.messages)

    response = RedirectResponse(url=f"/users/{user.id}", status_code=302)
    set_session_cookie(response, user)
    return response  # type: ignore[return-value]
