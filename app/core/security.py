"""
Session tokens (JWT), password hashing (bcrypt) and reset-token helpers.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.clock import Clock, utc_now
from app.core.config import settings
from app.core.exceptions import ExpiredToken, InvalidToken

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


# ── Passwords ───────────────────────────────────────────────────────
# bcrypt is CPU bound; run it off the event loop so concurrent requests
# keep flowing while a hash is computed.
async def hash_password(plain: str) -> str:
    return await run_in_threadpool(pwd_context.hash, plain)


async def verify_password(plain: str, hashed: str) -> bool:
    return await run_in_threadpool(pwd_context.verify, plain, hashed)


_DUMMY_HASH = pwd_context.hash(secrets.token_hex(16))


async def verify_password_or_dummy(plain: str, hashed: str | None) -> bool:
    """Check *plain* against *hashed*, spending the same time when there is no hash.

    Keeps the login response time identical for unknown emails and wrong
    passwords.
    """
    if hashed is None:
        await verify_password(plain, _DUMMY_HASH)
        return False
    return await verify_password(plain, hashed)


# ── Password-reset tokens ───────────────────────────────────────────
def hash_reset_token(plain: str) -> str:
    return hashlib.sha256(plain.encode("utf-8")).hexdigest()


def create_reset_token() -> tuple[str, str]:
    """Return ``(plaintext, sha256_hex)``. Only the hash is ever stored."""
    plain = secrets.token_hex(32)
    return plain, hash_reset_token(plain)


# ── JWT session tokens ──────────────────────────────────────────────
@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    subject: int
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and verifies stateless HS256 session tokens.

    Expiry is checked against the injected clock rather than the library's
    own ``datetime.now`` so it can be tested deterministically.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(days=90),
        clock: Clock = utc_now,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._lifetime = lifetime
        self._clock = clock

    @classmethod
    def from_settings(cls, clock: Clock = utc_now) -> TokenService:
        return cls(
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            lifetime=timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
            clock=clock,
        )

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, subject: Any) -> IssuedToken:
        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + int(self._lifetime.total_seconds())
        token = jwt.encode(
            {"sub": str(subject), "iat": issued_at, "exp": expires_at},
            self._secret,
            algorithm=self._algorithm,
        )
        return IssuedToken(token, datetime.fromtimestamp(expires_at, tz=timezone.utc))

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken() from exc

        try:
            subject = int(payload["sub"])
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

        if expires_at <= self._clock().timestamp():
            raise ExpiredToken()

        return TokenClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )
