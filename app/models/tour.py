"""
Tour & Review models — the bookable catalogue and its feedback.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Index,
                        Integer, String, Text)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Tour(Base):
    __tablename__ = "tours"
    __table_args__ = (Index("ix_tours_price_rating", "price", "ratings_average"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(40), unique=True, nullable=False)  # type: ignore[assignment]
    duration: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    max_group_size: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    difficulty: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    # easy | medium | difficult
    ratings_average: float = Column(Float, nullable=False, default=4.5)  # type: ignore[assignment]
    ratings_quantity: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    price: float = Column(Float, nullable=False)  # type: ignore[assignment]
    price_discount: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    summary: str = Column(String(500), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    image_cover: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    secret_tour: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    version: int = Column(Integer, nullable=False)  # type: ignore[assignment]

    __mapper_args__ = {"version_id_col": version}

    reviews = relationship(
        "Review",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="Review.created_at",
    )


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (Index("ix_reviews_tour_user", "tour_id", "user_id"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    review: str = Column(Text, nullable=False)  # type: ignore[assignment]
    rating: float = Column(Float, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    tour_id: int = Column(Integer, ForeignKey("tours.id"), nullable=False, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    version: int = Column(Integer, nullable=False)  # type: ignore[assignment]

    __mapper_args__ = {"version_id_col": version}

    tour = relationship("Tour", back_populates="reviews")
    user = relationship("User")
