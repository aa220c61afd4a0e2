"""User and follower-graph API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import clear_auth_cookies, get_current_user, get_optional_user
from app.exceptions import ValidationFailed
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.micropost import MicropostListResponse, MicropostResponse
from app.schemas.user import (
    SignupRequest,
    UpdateUserRequest,
    UserListResponse,
    UserProfileResponse,
    UserResponse,
    UserSummary,
)
from app.services.auth import get_auth_service
from app.services.relationships import get_relationship_service
from app.services.users import get_user_service

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = get_user_service().get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/", response_model=UserResponse)
@limiter.limit("5/minute")
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)) -> UserResponse:
    """Create an account. An activation link is sent to the given email."""
    auth_service = get_auth_service()
    try:
        user = auth_service.register(db, body.name, body.email, body.password)
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.messages) from None
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
def update_me(
    body: UpdateUserRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Update the authenticated user's profile. The password is optional."""
    try:
        user = get_user_service().update_user(db, user, body.name, body.email, body.password)
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.messages) from None
    return UserResponse.model_validate(user)


@router.delete("/me")
def delete_me(response: Response, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    """Delete the authenticated user's account."""
    get_user_service().delete_user(db, user)
    clear_auth_cookies(response)
    return {"detail": "Account deleted"}


@router.get("/{user_id}", response_model=UserProfileResponse)
def get_user(
    user_id: int,
    viewer: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    """Get a user's profile with follower counts."""
    user = _get_user_or_404(db, user_id)
    relationships = get_relationship_service()
    following_count, followers_count = relationships.counts(db, user)
    return UserProfileResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        activated=user.activated,
        created_at=user.created_at,
        following_count=following_count,
        followers_count=followers_count,
        is_following=bool(viewer) and relationships.is_following(db, viewer, user),
    )


@router.get("/{user_id}/microposts", response_model=MicropostListResponse)
def list_user_microposts(user_id: int, db: Session = Depends(get_db)) -> MicropostListResponse:
    """List a user's microposts, newest first."""
    _get_user_or_404(db, user_id)
    posts = get_user_service().get_user_microposts(db, user_id)
    return MicropostListResponse(
        items=[MicropostResponse.model_validate(p) for p in posts],
        total=len(posts),
    )


@router.get("/{user_id}/following", response_model=UserListResponse)
def list_following(user_id: int, db: Session = Depends(get_db)) -> UserListResponse:
    """Users the given user follows."""
    user = _get_user_or_404(db, user_id)
    users = get_relationship_service().following(db, user)
    return UserListResponse(items=[UserSummary.model_validate(u) for u in users], total=len(users))


@router.get("/{user_id}/followers", response_model=UserListResponse)
def list_followers(user_id: int, db: Session = Depends(get_db)) -> UserListResponse:
    """Users following the given user."""
    user = _get_user_or_404(db, user_id)
    users = get_relationship_service().followers(db, user)
    return UserListResponse(items=[UserSummary.model_validate(u) for u in users], total=len(users))


@router.post("/{user_id}/follow")
def follow_user(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    """Follow a user."""
    other = _get_user_or_404(db, user_id)
    if other.id == user.id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    get_relationship_service().follow(db, user, other)
    return {"detail": "Following", "user_id": other.id}


@router.delete("/{user_id}/follow")
def unfollow_user(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    """Unfollow a user."""
    other = _get_user_or_404(db, user_id)
    get_relationship_service().unfollow(db, user, other)
    return {"detail": "Unfollowed", "user_id": other.id}
