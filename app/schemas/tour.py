"""Pydantic schemas for Tours and Reviews."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.validators import reject_null

Difficulty = Literal["easy", "medium", "difficult"]


# ── Tour ────────────────────────────────────────────────────────────
class TourCreate(BaseModel):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: Difficulty
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = Field(default=0, ge=0)
    price: float = Field(gt=0)
    price_discount: float | None = None
    summary: str = Field(min_length=1, max_length=500)
    description: str | None = None
    image_cover: str = Field(min_length=1, max_length=255)
    secret_tour: bool = False

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    @model_validator(mode="after")
    def _discount_below_price(self) -> TourCreate:
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount ({self.price_discount}) must be below the regular price"
            )
        return self


class TourUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=10, max_length=40)
    duration: int | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, gt=0)
    difficulty: Difficulty | None = None
    ratings_average: float | None = Field(default=None, ge=1, le=5)
    ratings_quantity: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, gt=0)
    price_discount: float | None = None
    summary: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    image_cover: str | None = Field(default=None, min_length=1, max_length=255)
    secret_tour: bool | None = None

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    @field_validator(
        "name", "duration", "max_group_size", "difficulty", "ratings_average",
        "ratings_quantity", "price", "summary", "image_cover", "secret_tour",
        mode="before",
    )
    @classmethod
    def _not_null(cls, v: object) -> object:
        return reject_null(v)


# ── Review ──────────────────────────────────────────────────────────
class ReviewCreate(BaseModel):
    review: str = Field(min_length=1, max_length=2000)
    rating: float = Field(ge=1, le=5)
    # Taken from the path on the nested route
    tour_id: int | None = None

    model_config = {"extra": "forbid"}


class ReviewUpdate(BaseModel):
    review: str | None = Field(default=None, min_length=1, max_length=2000)
    rating: float | None = Field(default=None, ge=1, le=5)

    model_config = {"extra": "forbid"}

    @field_validator("review", "rating", mode="before")
    @classmethod
    def _not_null(cls, v: object) -> object:
        return reject_null(v)
