"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool = False


class SessionResponse(BaseModel):
    token: str
    user_id: int
    email: str
    name: str
    activated: bool
    remember_token: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    email: str
    token: str
    new_password: str


class ActivateRequest(BaseModel):
    email: str
    token: str
