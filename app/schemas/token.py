"""Pydantic schemas for session responses."""

from __future__ import annotations

from pydantic import BaseModel

from app.schemas.user import UserRead


class UserData(BaseModel):
    user: UserRead | None


class AuthResponse(BaseModel):
    status: str = "success"
    token: str
    data: UserData


class UserResponse(BaseModel):
    status: str = "success"
    data: UserData


class MessageResponse(BaseModel):
    status: str = "success"
    message: str
