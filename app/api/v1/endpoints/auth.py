"""
Auth endpoints — signup, login, logout, password reset and password change.

Every successful authentication returns the session token in the body
*and* as an HttpOnly ``jwt`` cookie with the same lifetime.

No ``from __future__ import annotations`` here: the slowapi decorator
wraps the endpoints, and FastAPI would resolve string annotations against
slowapi's module globals instead of ours.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (SESSION_COOKIE, get_db, get_email_sender,
                             get_token_service, protect, users)
from app.core.clock import Clock, get_clock
from app.core.config import settings
from app.core.email import EmailSender
from app.core.exceptions import (BadRequest, Conflict, DeliveryFailed,
                                 InvalidOrExpiredToken, NotFound, Unauthorized)
from app.core.limiter import limiter
from app.core.security import (TokenService, create_reset_token,
                               hash_password, hash_reset_token,
                               verify_password, verify_password_or_dummy)
from app.db.repository import Repository
from app.models.user import Role, User
from app.schemas.token import AuthResponse, MessageResponse, UserData
from app.schemas.user import (ForgotPasswordRequest, LoginRequest,
                              ResetPasswordRequest, SignupRequest,
                              UpdatePasswordRequest, UserRead)

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)

# Uniqueness spans deactivated accounts too.
all_users = Repository(User)


def _session_response(
    user: User,
    tokens: TokenService,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Issue a token for *user*, put it in the body and an HttpOnly cookie."""
    issued = tokens.issue(user.id)
    body = AuthResponse(token=issued.token, data=UserData(user=UserRead.model_validate(user)))
    response = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    response.set_cookie(
        key=SESSION_COOKIE,
        value=issued.token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=int(tokens.lifetime.total_seconds()),
        expires=issued.expires_at,
    )
    return response


@router.post("/users/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def signup(
    request: Request,
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Create an account with the ``user`` role and log it in."""
    if await all_users.find_one(db, User.email == body.email):
        raise Conflict("Email already registered")

    user = await all_users.create(
        db,
        {
            "name": body.name,
            "email": body.email,
            "password": await hash_password(body.password),
            "role": Role.USER,
        },
    )
    logger.info("New user signed up: id=%d", user.id)
    return _session_response(user, tokens, status.HTTP_201_CREATED)


@router.post("/users/login", response_model=AuthResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Authenticate with email + password.

    Unknown email, wrong password and deactivated account all produce the
    same 401 so the endpoint cannot be used to discover which accounts exist.
    """
    if not body.email or not body.password:
        raise BadRequest("Please provide email and password!")

    email = body.email.strip().lower()
    user = await users.find_one(db, User.email == email)
    if not await verify_password_or_dummy(body.password, user.password if user else None):
        logger.info("Failed login attempt for %s", email)
        raise Unauthorized("Incorrect email or password")

    return _session_response(user, tokens)  # type: ignore[arg-type]


@router.get("/users/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Overwrite the session cookie with a short-lived placeholder."""
    response = JSONResponse(content={"status": "success", "message": "Logged out"})
    response.set_cookie(
        key=SESSION_COOKIE,
        value="loggedout",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=10,
    )
    return response


@router.post("/users/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    mailer: EmailSender = Depends(get_email_sender),
) -> MessageResponse:
    """Email a one-time reset link; only the token's hash is stored."""
    user = await users.find_one(db, User.email == body.email)
    if user is None:
        raise NotFound("There is no user with that email address.")

    plain, hashed = create_reset_token()
    user.password_reset_token = hashed
    user.password_reset_expires = clock() + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    await db.commit()

    reset_url = (
        f"{str(request.base_url).rstrip('/')}{settings.API_V1_PREFIX}"
        f"/users/reset-password/{plain}"
    )
    message = (
        "Forgot your password? Submit a PATCH request with your new password and "
        f"password_confirm to: {reset_url}\n"
        "If you didn't forget your password, please ignore this email!"
    )

    try:
        await mailer.send(
            user.email,
            f"Your password reset token (valid for {settings.PASSWORD_RESET_EXPIRE_MINUTES} min)",
            message,
        )
    except Exception as exc:
        # Nothing was delivered, so nothing may stay pending.
        user.password_reset_token = None
        user.password_reset_expires = None
        await db.commit()
        logger.warning("Reset email for user %d not delivered; reset state cleared", user.id)
        if isinstance(exc, DeliveryFailed):
            raise
        raise DeliveryFailed() from exc

    logger.info("Password reset requested for user %d", user.id)
    return MessageResponse(message="Token sent to email!")


@router.patch("/users/reset-password/{token}", response_model=AuthResponse)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Consume a reset token, set the new password and log the user in."""
    hashed = hash_reset_token(token)
    now = clock()

    user = await users.find_one(
        db,
        User.password_reset_token == hashed,
        User.password_reset_expires > now,
    )
    if user is None:
        raise InvalidOrExpiredToken()

    new_password = await hash_password(body.password)

    # Conditional on the hash still being there: of two concurrent
    # completions only one can match.
    result = await db.execute(
        update(User)
        .where(User.id == user.id, User.password_reset_token == hashed)
        .values(
            password=new_password,
            password_changed_at=User.password_changed_stamp(now),
            password_reset_token=None,
            password_reset_expires=None,
            version=User.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidOrExpiredToken()

    await db.commit()
    await db.refresh(user)
    logger.info("Password reset completed for user %d", user.id)
    return _session_response(user, tokens)


@router.patch("/users/update-my-password", response_model=AuthResponse)
async def update_my_password(
    body: UpdatePasswordRequest,
    current_user: User = Depends(protect),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Change the password; every token issued before now stops working."""
    if not await verify_password(body.current_password, current_user.password):
        raise Unauthorized("Your current password is wrong.")

    current_user.password = await hash_password(body.password)
    current_user.set_password_changed(clock())
    await db.commit()
    await db.refresh(current_user)

    logger.info("Password changed for user %d", current_user.id)
    return _session_response(current_user, tokens)
