"""Authentication service: credentials, remember-me, activation and password reset."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import Expired, InvalidCredentials, InvalidToken, ValidationFailed
from app.models.user import CredentialPurpose, User
from app.services.mailer import Mailer, get_mailer
from app.services.passwords import PasswordHasher, get_password_hasher
from app.services.tokens import TokenCodec, get_token_codec
from app.services.users import get_user_service, normalize_email, validate_password, validate_user_fields

logger = logging.getLogger("sample_app")


class AuthService:
    """Handles registration, login and the token lifecycles tied to a user.

    The service keeps no per-user state between calls. The database session is
    passed in per call and is the only place digests are written.
    """

    def __init__(
        self,
        hasher: PasswordHasher | None = None,
        codec: TokenCodec | None = None,
        mailer: Mailer | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.hasher = hasher or get_password_hasher()
        self.codec = codec or TokenCodec(self.hasher)
        self.mailer = mailer or get_mailer()
        self.clock = clock
        self.reset_window = timedelta(hours=get_settings().PASSWORD_RESET_EXPIRE_HOURS)
        self._dummy_digest: str | None = None

    # --- Registration ---

    def register(self, db: Session, name: str, email: str, password: str) -> User:
        """Create a user, issue its activation token and send the activation email.

        Raises ValidationFailed with every failing field message.
        """
        errors = validate_user_fields(db, name, email, password)
        if errors:
            raise ValidationFailed(errors)

        user = User(
            name=name.strip(),
            email=normalize_email(email),
            password_digest=self.hasher.hash(password),
            activated=False,
        )
        self.issue_activation_token(user)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationFailed(["Email has already been taken"]) from None
        db.refresh(user)

        self.mailer.send_activation_email(user, user.activation_token)
        logger.info("Registered user %s", user.id)
        return user

    # --- Login ---

    def login(self, db: Session, email: str, password: str) -> User:
        """Return the user for a valid email/password pair.

        Raises InvalidCredentials for an unknown email and for a wrong password alike.
        """
        user = get_user_service().get_user_by_email(db, email)
        if user is None:
            # Spend the same bcrypt time as a real check.
            self.hasher.verify(password or "", self._timing_digest())
            raise InvalidCredentials()
        if not self.hasher.verify(password or "", user.password_digest):
            raise InvalidCredentials()
        return user

    def _timing_digest(self) -> str:
        if self._dummy_digest is None:
            self._dummy_digest = self.hasher.hash(self.codec.new_token())
        return self._dummy_digest

    def authenticated(self, user: User, purpose: CredentialPurpose, token: str | None) -> bool:
        """Whether ``token`` matches the stored digest for ``purpose``. False when no digest is stored."""
        if token is None:
            return False
        return self.codec.verify(token, user.digest_for(purpose))

    # --- Remember me ---

    def issue_remember_token(self, db: Session, user: User) -> str:
        """Issue a new remember token. Any earlier remember token stops validating."""
        token = self.codec.new_token()
        user.remember_token = token
        user.set_digest(CredentialPurpose.REMEMBER, self.codec.digest(token))
        db.commit()
        return token

    def forget_user(self, db: Session, user: User) -> None:
        """Drop the persistent session. Safe to call repeatedly."""
        user.remember_token = None
        if user.remember_digest is None:
            return
        user.set_digest(CredentialPurpose.REMEMBER, None)
        db.commit()

    def validate_remember_token(self, user: User, token: str | None) -> bool:
        """Whether a remember-cookie token belongs to the user's current persistent session."""
        return self.authenticated(user, CredentialPurpose.REMEMBER, token)

    # --- Activation ---

    def issue_activation_token(self, user: User) -> str:
        """Set the activation digest on a not-yet-persisted user and return the plaintext token."""
        token = self.codec.new_token()
        user.activation_token = token
        user.set_digest(CredentialPurpose.ACTIVATION, self.codec.digest(token))
        return token

    def activate(self, db: Session, user: User) -> None:
        """Mark the account as activated. Already-activated accounts keep their original timestamp."""
        if user.activated:
            return
        user.activated = True
        user.activated_at = self.clock()
        db.commit()
        logger.info("Activated user %s", user.id)

    def activate_with_token(self, db: Session, email: str, token: str) -> User:
        """Activate the account an activation link was sent to.

        Raises InvalidToken for an unknown email, a bad token or an account
        that is already active.
        """
        user = get_user_service().get_user_by_email(db, email)
        if user is None or user.activated or not self.authenticated(user, CredentialPurpose.ACTIVATION, token):
            raise InvalidToken()
        self.activate(db, user)
        return user

    # --- Password reset ---

    def issue_reset_token(self, db: Session, user: User) -> str:
        """Start a password reset request, superseding any pending one."""
        token = self.codec.new_token()
        user.reset_token = token
        user.set_digest(CredentialPurpose.RESET, self.codec.digest(token))
        user.reset_sent_at = self.clock()
        db.commit()
        return token

    def password_reset_expired(self, user: User) -> bool:
        """Whether the pending reset request is older than the reset window."""
        if user.reset_sent_at is None:
            return True
        return self.clock() - user.reset_sent_at > self.reset_window

    def validate_reset_token(self, user: User, token: str | None) -> None:
        """Raise Expired or InvalidToken unless ``token`` opens the user's pending reset.

        Does not consume the request. The caller clears the reset fields once
        the password change is committed.
        """
        if user.reset_digest is None:
            raise InvalidToken()
        if self.password_reset_expired(user):
            raise Expired()
        if not self.authenticated(user, CredentialPurpose.RESET, token):
            raise InvalidToken()

    def request_password_reset(self, db: Session, email: str) -> User | None:
        """Issue a reset token and mail it. Returns None for an unknown email.

        Callers must not reveal whether the user was found.
        """
        user = get_user_service().get_user_by_email(db, email)
        if user is None:
            # Same bcrypt work as a real request.
            self.codec.digest(self.codec.new_token())
            return None
        token = self.issue_reset_token(db, user)
        self.mailer.send_password_reset_email(user, token)
        return user

    def find_reset_user(self, db: Session, email: str, token: str) -> User:
        """Look up the user behind a reset link and validate the link."""
        user = get_user_service().get_user_by_email(db, email)
        if user is None:
            raise InvalidToken()
        self.validate_reset_token(user, token)
        return user

    def reset_password(self, db: Session, email: str, token: str, new_password: str) -> User:
        """Change the password through a reset link and consume the reset request."""
        user = self.find_reset_user(db, email, token)
        errors = validate_password(new_password)
        if errors:
            raise ValidationFailed(errors)

        user.password_digest = self.hasher.hash(new_password)
        user.reset_token = None
        user.set_digest(CredentialPurpose.RESET, None)
        user.reset_sent_at = None
        db.commit()
        logger.info("Password reset for user %s", user.id)
        return user


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
