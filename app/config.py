"""Configuration settings for Sample App."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./sample_app.db")

    # Session cookie (JWT)
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", "480"))

    # Remember-me cookies
    REMEMBER_COOKIE_DAYS: int = int(os.getenv("REMEMBER_COOKIE_DAYS", "7300"))

    # Password hashing
    BCRYPT_COST: int = int(os.getenv("BCRYPT_COST", "12"))
    BCRYPT_MIN_COST: bool = os.getenv("BCRYPT_MIN_COST", "false").lower() == "true"

    # Password reset
    PASSWORD_RESET_EXPIRE_HOURS: int = int(os.getenv("PASSWORD_RESET_EXPIRE_HOURS", "2"))

    # Validation limits
    NAME_MAX_LENGTH: int = int(os.getenv("NAME_MAX_LENGTH", "50"))
    EMAIL_MAX_LENGTH: int = int(os.getenv("EMAIL_MAX_LENGTH", "255"))
    PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))
    MICROPOST_MAX_LENGTH: int = int(os.getenv("MICROPOST_MAX_LENGTH", "140"))
    FEED_PAGE_SIZE: int = int(os.getenv("FEED_PAGE_SIZE", "30"))

    # Application
    APP_BASE_URL: str = os.getenv("APP_BASE_URL", "http://localhost:8000")
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def bcrypt_rounds(self) -> int:
        """Cost factor for bcrypt. Forced to the minimum under test."""
        if self.BCRYPT_MIN_COST or self.APP_ENV == "test":
            return 4
        return self.BCRYPT_COST

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if not os.getenv("JWT_SECRET_KEY"):
            errors.append("JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)")
        if not 4 <= self.BCRYPT_COST <= 31:
            errors.append(f"BCRYPT_COST={self.BCRYPT_COST} is outside bcrypt's 4..31 range")
        if self.APP_ENV == "production" and self.BCRYPT_COST < 10:
            errors.append("BCRYPT_COST below 10 in production")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
