"""
Overview endpoint — the landing-page payload.

Anonymous visitors get the same tour list as logged-in users; the session
is resolved on a best-effort basis only to greet the viewer.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, optional_identify
from app.api.v1.endpoints.tours import tours
from app.db.query import QueryFeatures, QuerySpec
from app.models.tour import Tour
from app.models.user import User
from app.schemas.user import UserRead

router = APIRouter(tags=["overview"])

_CARD_FIELDS = ("name", "duration", "difficulty", "price", "ratings_average", "summary", "image_cover")


@router.get("/overview")
async def overview(
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(optional_identify),
) -> dict[str, Any]:
    spec = QuerySpec(fields=_CARD_FIELDS)
    statement = QueryFeatures(Tour, spec, statement=tours.select()).build()
    cards = await tours.find_many(db, statement)
    return {
        "status": "success",
        "results": len(cards),
        "data": {
            "tours": cards,
            "user": UserRead.model_validate(viewer).model_dump(mode="json") if viewer else None,
        },
    }
