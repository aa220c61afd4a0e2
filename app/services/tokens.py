"""Random token generation and digesting."""

import secrets

from app.exceptions import EntropyUnavailable
from app.services.passwords import PasswordHasher, get_password_hasher

TOKEN_BYTES = 32  # 256 bits


class TokenCodec:
    """Issues URL-safe random tokens and stores only their bcrypt digests."""

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self.hasher = hasher or get_password_hasher()

    def new_token(self) -> str:
        """Return a fresh URL-safe token.

        Raises EntropyUnavailable if the OS randomness source cannot be read.
        """
        try:
            return secrets.token_urlsafe(TOKEN_BYTES)
        except (NotImplementedError, OSError) as e:
            raise EntropyUnavailable("secure random source unavailable") from e

    def digest(self, token: str) -> str:
        """Salted digest of a token. Two calls on the same token differ."""
        return self.hasher.hash(token)

    def verify(self, token: str, digest: str | None) -> bool:
        """Whether the token produced the digest."""
        return self.hasher.verify(token, digest)


_token_codec: TokenCodec | None = None


def get_token_codec() -> TokenCodec:
    """Get singleton token codec instance."""
    global _token_codec
    if _token_codec is None:
        _token_codec = TokenCodec()
    return _token_codec
