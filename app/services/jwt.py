"""Signed cookie payloads (JWT)."""

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import get_settings

SESSION_SCOPE = "session"
REMEMBER_SCOPE = "remember"


class JWTService:
    """Signs the user id carried by the session and remember-me cookies."""

    def __init__(self) -> None:
        settings = get_settings()
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES
        self.remember_days = settings.REMEMBER_COOKIE_DAYS

    def create_token(self, user_id: int, scope: str = SESSION_SCOPE) -> str:
        """Create a signed token for the given user."""
        if scope == REMEMBER_SCOPE:
            expire = datetime.utcnow() + timedelta(days=self.remember_days)
        else:
            expire = datetime.utcnow() + timedelta(minutes=self.expire_minutes)
        payload = {"sub": str(user_id), "scope": scope, "exp": expire}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a token. Returns None if invalid."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def user_id_from_token(self, token: str | None, scope: str = SESSION_SCOPE) -> int | None:
        """User id signed into a token of the given scope, or None."""
        if not token:
            return None
        payload = self.decode_token(token)
        if not payload or payload.get("scope") != scope:
            return None
        try:
            return int(payload["sub"])
        except (KeyError, ValueError):
            return None


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
