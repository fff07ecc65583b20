"""
Review endpoints — flat ``/reviews`` plus the nested ``/tours/{tour_id}/reviews``.

Listing, reading, updating and deleting come from the handler factory.
Creation is hand-written because the tour and author are taken from the
path and the session rather than from the body.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1 import factory
from app.api.v1.deps import get_db, protect, restrict_to
from app.api.v1.endpoints.tours import tours
from app.core.exceptions import BadRequest, NotFound
from app.db.repository import Repository
from app.models.tour import Review
from app.models.user import Role, User
from app.schemas.tour import ReviewCreate, ReviewUpdate

router = APIRouter(tags=["reviews"])
logger = logging.getLogger(__name__)

reviews = Repository(Review)

_members = [Depends(protect)]
_authors = [Depends(restrict_to(Role.USER, Role.ADMIN))]


async def _create_review(
    db: AsyncSession,
    tour_id: int | None,
    author: User,
    body: ReviewCreate,
) -> dict[str, Any]:
    if tour_id is None:
        raise BadRequest("A review must belong to a tour")
    if await tours.get(db, tour_id) is None:
        raise NotFound(f"No tours record found with ID {tour_id}")

    record = await reviews.create(
        db,
        {"review": body.review, "rating": body.rating, "tour_id": tour_id, "user_id": author.id},
    )
    logger.info("User %d reviewed tour %d", author.id, tour_id)
    return {"status": "success", "data": {"doc": record.to_dict()}}


@router.post("/reviews", status_code=status.HTTP_201_CREATED)
async def create_review(
    body: ReviewCreate,
    author: User = Depends(restrict_to(Role.USER)),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await _create_review(db, body.tour_id, author, body)


@router.post("/tours/{tour_id}/reviews", status_code=status.HTTP_201_CREATED)
async def create_tour_review(
    tour_id: int,
    body: ReviewCreate,
    author: User = Depends(restrict_to(Role.USER)),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await _create_review(db, tour_id, author, body)


_list_reviews = factory.get_all(reviews, parent="tour_id", default_sort="created_at")

router.add_api_route(
    "/reviews",
    _list_reviews,
    methods=["GET"],
    name="list_reviews",
    dependencies=_members,
)
router.add_api_route(
    "/tours/{tour_id}/reviews",
    _list_reviews,
    methods=["GET"],
    name="list_tour_reviews",
    dependencies=_members,
)
router.add_api_route(
    "/reviews/{resource_id}",
    factory.get_one(reviews),
    methods=["GET"],
    name="get_review",
    dependencies=_members,
)
router.add_api_route(
    "/reviews/{resource_id}",
    factory.update_one(reviews, ReviewUpdate),
    methods=["PATCH"],
    name="update_review",
    dependencies=_authors,
)
router.add_api_route(
    "/reviews/{resource_id}",
    factory.delete_one(reviews),
    methods=["DELETE"],
    name="delete_review",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_authors,
)
