"""ORM models. Importing this package registers every table with ``Base.metadata``."""

from app.models.micropost import Micropost
from app.models.relationship import Relationship
from app.models.user import CredentialPurpose, User

__all__ = ["CredentialPurpose", "Micropost", "Relationship", "User"]
