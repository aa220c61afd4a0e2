"""Domain errors raised by the credential and user services."""


class AuthError(Exception):
    """Base class for credential failures.

    The message is safe to show to end users and never says which check failed.
    """

    message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidCredentials(AuthError):
    """Unknown email or wrong password. The two cases are deliberately indistinguishable."""

    message = "Invalid email/password combination"


class InvalidToken(AuthError):
    """Presented token does not match the stored digest."""

    message = "Invalid or expired link"


class Expired(AuthError):
    """Password reset window has elapsed."""

    message = "Password reset has expired. Please request a new one."


class EntropyUnavailable(RuntimeError):
    """The OS cannot supply secure randomness. Fatal: no token may be issued."""


class ValidationFailed(ValueError):
    """One or more record validations failed."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        super().__init__("; ".join(messages))


class NotFound(LookupError):
    """Requested record does not exist or is not visible to the caller."""
