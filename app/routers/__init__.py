"""API routers."""

from app.routers.auth import router as auth_router
from app.routers.microposts import router as microposts_router
from app.routers.users import router as users_router

__all__ = ["auth_router", "users_router", "microposts_router"]
