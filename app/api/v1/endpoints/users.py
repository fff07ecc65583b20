"""
User account endpoints.

- ``/users/me``, ``/users/update-me``, ``/users/delete-me`` act on the
  caller's own account.
- ``/users/session`` reports who (if anyone) is logged in; never rejects.
- Listing and managing other accounts is admin-only and generated by the
  handler factory. Deleting an account only deactivates it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1 import factory
from app.api.v1.deps import get_db, optional_identify, protect, restrict_to, users
from app.core.exceptions import BadRequest
from app.models.user import Role, User
from app.schemas.token import UserData, UserResponse
from app.schemas.user import UpdateMeRequest, UserRead, UserUpdate

router = APIRouter(tags=["users"])
logger = logging.getLogger(__name__)


# ── Self-service (declared before /users/{resource_id}) ─────────────
@router.get("/users/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(protect)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return UserResponse(data=UserData(user=UserRead.model_validate(current_user)))


@router.get("/users/session", response_model=UserResponse)
async def read_session(user: User | None = Depends(optional_identify)) -> UserResponse:
    """Who is logged in, if anyone — for page rendering, never a 401."""
    return UserResponse(data=UserData(user=UserRead.model_validate(user) if user else None))


@router.patch("/users/update-me", response_model=UserResponse)
async def update_me(
    body: UpdateMeRequest,
    current_user: User = Depends(protect),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Update name / email. Passwords go through ``/users/update-my-password``."""
    if body.password is not None or body.password_confirm is not None:
        raise BadRequest(
            "This route is not for password updates. Please use /users/update-my-password."
        )

    changes = body.model_dump(exclude_unset=True, include={"name", "email"})
    for field, value in changes.items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)

    logger.info("User %d updated own profile: %s", current_user.id, sorted(changes))
    return UserResponse(data=UserData(user=UserRead.model_validate(current_user)))


@router.delete("/users/delete-me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    current_user: User = Depends(protect),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Deactivate the caller's account. The row is kept."""
    current_user.active = False
    await db.commit()
    logger.info("User %d deactivated own account", current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Admin management (generated) ────────────────────────────────────
_admin = [Depends(restrict_to(Role.ADMIN))]

router.add_api_route(
    "/users",
    factory.get_all(users, default_sort="name"),
    methods=["GET"],
    name="list_users",
    dependencies=_admin,
)
router.add_api_route(
    "/users/{resource_id}",
    factory.get_one(users),
    methods=["GET"],
    name="get_user",
    dependencies=_admin,
)
router.add_api_route(
    "/users/{resource_id}",
    factory.update_one(users, UserUpdate),
    methods=["PATCH"],
    name="update_user",
    dependencies=_admin,
)
router.add_api_route(
    "/users/{resource_id}",
    factory.delete_one(users, soft_delete="active"),
    methods=["DELETE"],
    name="delete_user",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_admin,
)
