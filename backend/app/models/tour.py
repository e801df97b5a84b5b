"""
TourDesk Backend: Tour SQLAlchemy Model
==========================================

What:  ORM model representing the `tours` table.
Why:   Maps Python objects to database rows for type-safe database operations.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used by TourStore for reads/updates and by Alembic for schema management.

Image References:
    - cover_image:    Filename (not path) of the cover image inside IMAGE_DIR
    - gallery_images: Ordered list of gallery filenames, replaced as a whole
    Both hold names produced by the image service only; the record store is the
    single source of truth for which files in IMAGE_DIR are live.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Float, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.types import TIMESTAMP

from app.database import Base

DIFFICULTIES = ("easy", "medium", "difficult")

NAME_MIN_LENGTH = 10
NAME_MAX_LENGTH = 40


def slugify(value: str) -> str:
    """Lowercase, dash-separated form of a tour name ("The Forest Hiker" → "the-forest-hiker")."""
    normalized = re.sub(r"[^a-zA-Z0-9]+", "-", value.strip().lower())
    return normalized.strip("-")


class Tour(Base):
    """
    Represents a bookable tour.

    Lifecycle of the image columns:
        1. A new cover/gallery upload is transcoded and written to IMAGE_DIR
        2. The row is updated to point at the new names (durability boundary)
        3. Names the row no longer references are deleted from IMAGE_DIR
    """

    __tablename__ = "tours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False, unique=True)
    slug: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)

    ratings_average: Mapped[float] = mapped_column(
        Float, nullable=False, default=4.5, server_default=text("4.5")
    )
    ratings_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    summary: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Images ────────────────────────────────────────────────────────────
    # JSON (not ARRAY) so the same model runs on PostgreSQL and SQLite
    cover_image: Mapped[str] = mapped_column(String(255), nullable=False)
    gallery_images: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list
    )

    secret_tour: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    @validates("name")
    def _sync_slug(self, key: str, value: str) -> str:
        if value is not None:
            self.slug = slugify(value)
        return value

    @validates("ratings_average")
    def _round_rating(self, key: str, value: Optional[float]) -> Optional[float]:
        # 4.666 → 4.7
        if value is None:
            return value
        return round(value * 10) / 10

    def validation_errors(self) -> List[str]:
        """
        Record-level rules checked before every write.

        Returns a list of human-readable problems; empty means valid.
        Rules spanning several columns (discount vs. price) live here rather
        than in the request schema, because the request may change only one side.
        """
        errors: List[str] = []
        required = {
            "name": self.name,
            "duration": self.duration,
            "max_group_size": self.max_group_size,
            "difficulty": self.difficulty,
            "price": self.price,
            "summary": self.summary,
            "description": self.description,
            "cover_image": self.cover_image,
        }
        for field, value in required.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"A tour must have a {field}")

        if self.name and not NAME_MIN_LENGTH <= len(self.name) <= NAME_MAX_LENGTH:
            errors.append(
                f"A tour name must have between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
            )
        if self.difficulty and self.difficulty not in DIFFICULTIES:
            errors.append("Difficulty can be: easy, medium, or difficult.")
        if self.ratings_average is not None and not 1 <= self.ratings_average <= 5:
            errors.append("Rating must be between 1.0 and 5.0")
        if (
            self.price_discount is not None
            and self.price is not None
            and self.price_discount >= self.price
        ):
            errors.append("The discount must be smaller than price")
        if not isinstance(self.gallery_images, list):
            errors.append("Gallery images must be a list of filenames")
        return errors

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', cover_image='{self.cover_image}')>"
