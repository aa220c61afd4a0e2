"""Outbound account mail.

No SMTP transport is wired up; links are written to the server log, which is
where operators pick them up during development.
"""

import logging
from typing import Protocol
from urllib.parse import quote

from app.config import get_settings
from app.models.user import User

logger = logging.getLogger("sample_app")


class Mailer(Protocol):
    def send_activation_email(self, user: User, activation_token: str) -> None: ...

    def send_password_reset_email(self, user: User, reset_token: str) -> None: ...


class LogMailer:
    """Mailer that logs the account links instead of sending them."""

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = (base_url or get_settings().APP_BASE_URL).rstrip("/")

    def activation_url(self, user: User, activation_token: str) -> str:
        return f"{self.base_url}/account_activations/{activation_token}?email={quote(user.email)}"

    def password_reset_url(self, user: User, reset_token: str) -> str:
        return f"{self.base_url}/password_resets/{reset_token}?email={quote(user.email)}"

    def send_activation_email(self, user: User, activation_token: str) -> None:
        logger.info("ACCOUNT ACTIVATION for %s: %s", user.email, self.activation_url(user, activation_token))

    def send_password_reset_email(self, user: User, reset_token: str) -> None:
        logger.info("PASSWORD RESET for %s: %s", user.email, self.password_reset_url(user, reset_token))


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    """Get singleton mailer instance."""
    global _mailer
    if _mailer is None:
        _mailer = LogMailer()
    return _mailer
