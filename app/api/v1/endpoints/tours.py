"""
Tour endpoints — entirely generated by the handler factory.

Reads are public; writes need ``admin`` or ``lead-guide``. Secret tours are
excluded from every lookup through the repository scope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.api.v1 import factory
from app.api.v1.deps import restrict_to
from app.core.exceptions import ValidationFailed
from app.db.repository import Repository
from app.models.tour import Tour
from app.models.user import Role
from app.schemas.tour import TourCreate, TourUpdate

router = APIRouter(tags=["tours"])

tours = Repository(Tour, scope=[Tour.secret_tour.is_(False)])

_staff = [Depends(restrict_to(Role.ADMIN, Role.LEAD_GUIDE))]


def _check_discount(tour: Tour) -> None:
    """Partial updates can move either side of the price/discount rule."""
    if tour.price_discount is not None and tour.price_discount >= tour.price:
        raise ValidationFailed(
            f"Invalid input: Discount ({tour.price_discount}) must be below the regular price"
        )


router.add_api_route(
    "/tours",
    factory.get_all(tours),
    methods=["GET"],
    name="list_tours",
)
router.add_api_route(
    "/tours",
    factory.create_one(tours, TourCreate),
    methods=["POST"],
    name="create_tour",
    status_code=status.HTTP_201_CREATED,
    dependencies=_staff,
)
router.add_api_route(
    "/tours/{resource_id}",
    factory.get_one(tours, expand=("reviews",)),
    methods=["GET"],
    name="get_tour",
)
router.add_api_route(
    "/tours/{resource_id}",
    factory.update_one(tours, TourUpdate, validate=_check_discount),
    methods=["PATCH"],
    name="update_tour",
    dependencies=_staff,
)
router.add_api_route(
    "/tours/{resource_id}",
    factory.delete_one(tours),
    methods=["DELETE"],
    name="delete_tour",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_staff,
)
