"""Pydantic schemas for user endpoints."""

from datetime import datetime

from pydantic import BaseModel


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str


class UpdateUserRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    activated: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    items: list[UserSummary]
    total: int


class UserProfileResponse(UserResponse):
    following_count: int
    followers_count: int
    is_following: bool = False
