"""Micropost API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_current_user
from app.exceptions import NotFound, ValidationFailed
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.micropost import MicropostCreate, MicropostListResponse, MicropostResponse
from app.services.microposts import get_micropost_service

router = APIRouter(prefix="/api/v1/microposts", tags=["Microposts"])

MAX_FEED_LIMIT = 100


@router.post("/", response_model=MicropostResponse)
@limiter.limit("30/minute")
def create_micropost(
    request: Request,
    body: MicropostCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MicropostResponse:
    """Post a micropost."""
    try:
        post = get_micropost_service().create_micropost(db, user, body.content)
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.messages) from None
    return MicropostResponse.model_validate(post)


@router.get("/feed", response_model=MicropostListResponse)
def feed(
    offset: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=MAX_FEED_LIMIT),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MicropostListResponse:
    """Microposts from the user and everyone they follow, newest first."""
    posts = get_micropost_service().feed(db, user, limit=limit or get_settings().FEED_PAGE_SIZE, offset=offset)
    return MicropostListResponse(
        items=[MicropostResponse.model_validate(p) for p in posts],
        total=len(posts),
    )


@router.delete("/{micropost_id}")
def delete_micropost(
    micropost_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Delete one of your own microposts."""
    try:
        get_micropost_service().delete_micropost(db, user, micropost_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Micropost not found") from None
    return {"detail": "Micropost deleted"}
