"""Follower graph service."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.relationship import Relationship
from app.models.user import User


class RelationshipService:
    """Handles following and unfollowing users."""

    def follow(self, db: Session, user: User, other: User) -> None:
        """Follow ``other``. Following yourself or someone already followed is a no-op."""
        if user.id == other.id or self.is_following(db, user, other):
            return
        db.add(Relationship(follower_id=user.id, followed_id=other.id))
        try:
            db.commit()
        except IntegrityError:
            # Concurrent follow of the same pair already landed.
            db.rollback()

    def unfollow(self, db: Session, user: User, other: User) -> None:
        """Stop following ``other``. No-op if not following."""
        db.query(Relationship).filter(
            Relationship.follower_id == user.id, Relationship.followed_id == other.id
        ).delete(synchronize_session=False)
        db.commit()

    def is_following(self, db: Session, user: User, other: User) -> bool:
        """Whether ``user`` follows ``other``."""
        return (
            db.query(Relationship.id)
            .filter(Relationship.follower_id == user.id, Relationship.followed_id == other.id)
            .first()
            is not None
        )

    def following(self, db: Session, user: User) -> list[User]:
        """Users that ``user`` follows."""
        return (
            db.query(User)
            .join(Relationship, Relationship.followed_id == User.id)
            .filter(Relationship.follower_id == user.id)
            .order_by(User.name)
            .all()
        )

    def followers(self, db: Session, user: User) -> list[User]:
        """Users following ``user``."""
        return (
            db.query(User)
            .join(Relationship, Relationship.follower_id == User.id)
            .filter(Relationship.followed_id == user.id)
            .order_by(User.name)
            .all()
        )

    def counts(self, db: Session, user: User) -> tuple[int, int]:
        """Return (following_count, followers_count)."""
        following_count = db.query(Relationship).filter(Relationship.follower_id == user.id).count()
        followers_count = db.query(Relationship).filter(Relationship.followed_id == user.id).count()
        return following_count, followers_count


_relationship_service: RelationshipService | None = None


def get_relationship_service() -> RelationshipService:
    """Get singleton relationship service instance."""
    global _relationship_service
    if _relationship_service is None:
        _relationship_service = RelationshipService()
    return _relationship_service
