"""User model."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base


class CredentialPurpose(enum.Enum):
    """What a stored digest protects. Each purpose owns exactly one column on ``User``."""

    PASSWORD = "password_digest"
    REMEMBER = "remember_digest"
    ACTIVATION = "activation_digest"
    RESET = "reset_digest"

    @property
    def column(self) -> str:
        return self.value


class User(Base):
    """Application user and its persisted credential digests."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_digest = Column(String(60), nullable=False)
    remember_digest = Column(String(60), nullable=True)
    activation_digest = Column(String(60), nullable=True)
    activated = Column(Boolean, nullable=False, default=False)
    activated_at = Column(DateTime, nullable=True)
    reset_digest = Column(String(60), nullable=True)
    reset_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    microposts = relationship(
        "Micropost",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    active_relationships = relationship(
        "Relationship",
        foreign_keys="Relationship.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    passive_relationships = relationship(
        "Relationship",
        foreign_keys="Relationship.followed_id",
        back_populates="followed",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # Plaintext tokens live only for the request that issued them; never columns.
    remember_token = None
    activation_token = None
    reset_token = None

    def digest_for(self, purpose: CredentialPurpose) -> str | None:
        """Stored digest for the given purpose, or None."""
        return getattr(self, purpose.column)

    def set_digest(self, purpose: CredentialPurpose, digest: str | None) -> None:
        """Replace the stored digest for the given purpose."""
        setattr(self, purpose.column, digest)
