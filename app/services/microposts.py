"""Micropost service for posting, deleting and building feeds."""

from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import NotFound, ValidationFailed
from app.models.micropost import Micropost
from app.models.relationship import Relationship
from app.models.user import User


class MicropostService:
    """Handles microposts and the home feed."""

    def validate_content(self, content: str | None) -> list[str]:
        """Validation messages for micropost content."""
        max_length = get_settings().MICROPOST_MAX_LENGTH
        content = (content or "").strip()
        if not content:
            return ["Content can't be blank"]
        if len(content) > max_length:
            return [f"Content is too long (maximum is {max_length} characters)"]
        return []

    def create_micropost(self, db: Session, user: User, content: str) -> Micropost:
        """Post a micropost as ``user``."""
        errors = self.validate_content(content)
        if errors:
            raise ValidationFailed(errors)
        post = Micropost(user_id=user.id, content=content.strip())
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    def get_micropost(self, db: Session, micropost_id: int) -> Micropost | None:
        """Get a micropost by ID."""
        return db.get(Micropost, micropost_id)

    def delete_micropost(self, db: Session, user: User, micropost_id: int) -> None:
        """Delete one of the user's own microposts. Raises NotFound for anyone else's."""
        post = (
            db.query(Micropost)
            .filter(Micropost.id == micropost_id, Micropost.user_id == user.id)
            .first()
        )
        if post is None:
            raise NotFound("Micropost not found")
        db.delete(post)
        db.commit()

    def feed(self, db: Session, user: User, limit: int | None = None, offset: int = 0) -> list[Micropost]:
        """Microposts by the user and everyone they follow, newest first."""
        following_ids = db.query(Relationship.followed_id).filter(Relationship.follower_id == user.id)
        query = (
            db.query(Micropost)
            .filter((Micropost.user_id == user.id) | Micropost.user_id.in_(following_ids))
            .order_by(Micropost.created_at.desc(), Micropost.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()


_micropost_service: MicropostService | None = None


def get_micropost_service() -> MicropostService:
    """Get singleton micropost service instance."""
    global _micropost_service
    if _micropost_service is None:
        _micropost_service = MicropostService()
    return _micropost_service
