"""Pydantic schemas for User accounts and the auth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.user import Role
from app.schemas.validators import reject_null

_MIN_PASSWORD = 8


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Please provide a valid email")
    return v


class _PasswordPair(BaseModel):
    password: str = Field(min_length=_MIN_PASSWORD, max_length=128)
    password_confirm: str

    @model_validator(mode="after")
    def _passwords_match(self) -> _PasswordPair:
        if self.password != self.password_confirm:
            raise ValueError("Passwords must match")
        return self


class SignupRequest(_PasswordPair):
    name: str = Field(min_length=1, max_length=200)
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)


class ResetPasswordRequest(_PasswordPair):
    pass


class UpdatePasswordRequest(_PasswordPair):
    current_password: str


class UpdateMeRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    # Present only so the endpoint can reject them explicitly
    password: str | None = None
    password_confirm: str | None = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def _not_null(cls, v: object) -> object:
        return reject_null(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v) if v is not None else v


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: Role

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """Admin update — never carries password fields."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = None
    role: Role | None = None

    model_config = {"extra": "forbid"}

    @field_validator("name", "email", "role", mode="before")
    @classmethod
    def _not_null(cls, v: object) -> object:
        return reject_null(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v) if v is not None else v
