"""Password hashing with bcrypt."""

import bcrypt

from app.config import get_settings


class PasswordHasher:
    """Salted, adaptive-cost one-way hash for passwords and tokens."""

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds if rounds is not None else get_settings().bcrypt_rounds

    def hash(self, secret: str) -> str:
        """Hash a secret. Raises ValueError if it exceeds bcrypt's 72-byte limit."""
        return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, digest: str | None) -> bool:
        """Check a secret against a digest in constant time.

        An absent or malformed digest never matches, so an account without a
        password digest can never authenticate.
        """
        if not digest or secret is None:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher()
    return _password_hasher
