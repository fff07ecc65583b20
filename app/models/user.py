"""
User model — authentication & role-based access control.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from app.core.clock import as_utc
from app.db.base import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"


class User(Base):
    __tablename__ = "users"
    __hidden__ = frozenset(
        {"password", "active", "password_reset_token", "password_reset_expires"}
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    role: Role = Column(  # type: ignore[assignment]
        Enum(Role, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.USER,
    )
    active: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    password_changed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    password_reset_token: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]
    password_reset_expires: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False)  # type: ignore[assignment]

    __mapper_args__ = {"version_id_col": version}

    def changed_password_after(self, issued_at: datetime) -> bool:
        """True when the password was rotated after a token issued at *issued_at*."""
        if self.password_changed_at is None:
            return False
        return int(as_utc(self.password_changed_at).timestamp()) > int(issued_at.timestamp())

    @staticmethod
    def password_changed_stamp(now: datetime) -> datetime:
        # One second back so a token issued in the same second as the
        # change is not rejected by changed_password_after().
        return now - timedelta(seconds=1)

    def set_password_changed(self, now: datetime) -> None:
        self.password_changed_at = self.password_changed_stamp(now)
