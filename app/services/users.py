"""User lookup and record validation."""

import re

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import ValidationFailed
from app.models.micropost import Micropost
from app.models.user import User
from app.services.passwords import get_password_hasher

EMAIL_REGEX = re.compile(r"^[\w+\-.]+@[a-z\d\-]+(\.[a-z\d\-]+)*\.[a-z]+$", re.IGNORECASE)
BCRYPT_MAX_BYTES = 72


def normalize_email(email: str | None) -> str:
    """Strip and lowercase an email address. Stored emails are always in this form."""
    return (email or "").strip().lower()


def validate_user_fields(
    db: Session,
    name: str | None,
    email: str | None,
    password: str | None,
    *,
    user_id: int | None = None,
    password_required: bool = True,
) -> list[str]:
    """Collect validation messages for a user record. Empty list means valid.

    ``password`` may be None on update when ``password_required`` is False.
    """
    settings = get_settings()
    errors: list[str] = []

    name = (name or "").strip()
    if not name:
        errors.append("Name can't be blank")
    elif len(name) > settings.NAME_MAX_LENGTH:
        errors.append(f"Name is too long (maximum is {settings.NAME_MAX_LENGTH} characters)")

    email = normalize_email(email)
    if not email:
        errors.append("Email can't be blank")
    elif len(email) > settings.EMAIL_MAX_LENGTH:
        errors.append(f"Email is too long (maximum is {settings.EMAIL_MAX_LENGTH} characters)")
    elif not EMAIL_REGEX.match(email):
        errors.append("Email is invalid")
    else:
        query = db.query(User.id).filter(func.lower(User.email) == email)
        if user_id is not None:
            query = query.filter(User.id != user_id)
        if query.first():
            errors.append("Email has already been taken")

    if password is None and not password_required:
        return errors
    errors.extend(validate_password(password))
    return errors


def validate_password(password: str | None) -> list[str]:
    """Validation messages for a new password."""
    settings = get_settings()
    if not password or not password.strip():
        return ["Password can't be blank"]
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        return [f"Password is too short (minimum is {settings.PASSWORD_MIN_LENGTH} characters)"]
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return [f"Password is too long (maximum is {BCRYPT_MAX_BYTES} bytes)"]
    return []


class UserService:
    """Read-side user queries used by pages and API endpoints."""

    def get_user(self, db: Session, user_id: int) -> User | None:
        """Get a user by ID."""
        return db.get(User, user_id)

    def get_user_by_email(self, db: Session, email: str | None) -> User | None:
        """Get a user by email, case-insensitively."""
        email = normalize_email(email)
        if not email:
            return None
        return db.query(User).filter(User.email == email).first()

    def get_user_microposts(self, db: Session, user_id: int, limit: int | None = None) -> list[Micropost]:
        """Microposts written by a user, newest first."""
        query = (
            db.query(Micropost)
            .filter(Micropost.user_id == user_id)
            .order_by(Micropost.created_at.desc(), Micropost.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def update_user(
        self,
        db: Session,
        user: User,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        """Update profile fields. Omitted fields keep their value; the password is optional."""
        new_name = user.name if name is None else name
        new_email = user.email if email is None else email
        errors = validate_user_fields(db, new_name, new_email, password, user_id=user.id, password_required=False)
        if errors:
            raise ValidationFailed(errors)

        user.name = new_name.strip()
        user.email = normalize_email(new_email)
        if password is not None:
            user.password_digest = get_password_hasher().hash(password)
        db.commit()
        db.refresh(user)
        return user

    def delete_user(self, db: Session, user: User) -> None:
        """Delete a user together with their microposts and relationships."""
        db.delete(user)
        db.commit()


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get singleton user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
