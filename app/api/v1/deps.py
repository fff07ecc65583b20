"""
FastAPI dependencies — database session, collaborators and the access guard.

The resolved user is *returned* by ``protect`` and handed to endpoints via
``Depends``; nothing is stashed on the request object.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any, Optional

from fastapi import Cookie, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.core.email import EmailSender, SMTPEmailSender
from app.core.exceptions import AppError, Forbidden, Unauthorized
from app.core.security import TokenService
from app.db.repository import Repository
from app.db.session import async_session_factory
from app.models.user import Role, User

logger = logging.getLogger(__name__)

# auto_error=False so we can fall back to the cookie when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)

SESSION_COOKIE = "jwt"

# Inactive accounts are invisible to every normal lookup.
users = Repository(User, scope=[User.active.is_(True)])


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Collaborators ───────────────────────────────────────────────────
def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    return TokenService.from_settings(clock=clock)


def get_email_sender() -> EmailSender:
    return SMTPEmailSender.from_settings()


# ── Access guard ────────────────────────────────────────────────────
async def resolve_identity(
    token: str | None,
    db: AsyncSession,
    tokens: TokenService,
) -> User:
    """Turn a raw bearer token into a live, active user or raise ``Unauthorized``."""
    if not token:
        raise Unauthorized()

    claims = tokens.verify(token)

    user = await users.get(db, claims.subject)
    if user is None:
        raise Unauthorized("The user belonging to this token no longer exists.")

    if user.changed_password_after(claims.issued_at):
        raise Unauthorized("Password was recently changed. Please log in again.")

    return user


async def protect(
    token: Optional[str] = Depends(oauth2_scheme),
    session_cookie: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """Require a valid session — header first, then the HttpOnly cookie."""
    return await resolve_identity(token or session_cookie, db, tokens)


async def optional_identify(
    token: Optional[str] = Depends(oauth2_scheme),
    session_cookie: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> User | None:
    """Best-effort identification for presentation endpoints; never rejects."""
    try:
        return await resolve_identity(token or session_cookie, db, tokens)
    except AppError as exc:
        logger.debug("Proceeding anonymously: %s", exc.message)
        return None


def restrict_to(*roles: Role) -> Callable[..., Coroutine[Any, Any, User]]:
    """Build a dependency that admits only users holding one of *roles*."""
    allowed = frozenset(roles)

    async def _guard(current_user: User = Depends(protect)) -> User:
        if current_user.role not in allowed:
            raise Forbidden()
        return current_user

    return _guard
