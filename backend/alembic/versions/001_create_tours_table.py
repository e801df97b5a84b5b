"""Create tours table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `tours` table, including the cover/gallery image references.
How:   Portable column types only (JSON gallery, integer id) so the same
       migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops the table entirely (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the tours table. Column docs live in app/models/tour.py."""
    op.create_table(
        "tours",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(40), nullable=False),
        sa.Column("slug", sa.String(80), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("max_group_size", sa.Integer(), nullable=False),
        sa.Column("difficulty", sa.String(20), nullable=False),
        sa.Column(
            "ratings_average",
            sa.Float(),
            nullable=False,
            server_default=sa.text("4.5"),
        ),
        sa.Column(
            "ratings_quantity",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("price_discount", sa.Float(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),

        # Image references: filenames inside IMAGE_DIR, never paths
        sa.Column(
            "cover_image",
            sa.String(255),
            nullable=False,
            comment="Filename of the cover image inside the image directory",
        ),
        sa.Column(
            "gallery_images",
            sa.JSON(),
            nullable=False,
            comment="Ordered list of gallery image filenames",
        ),

        sa.Column(
            "secret_tour",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_tours_name"),
    )


def downgrade() -> None:
    """
    Drop the tours table entirely.

    WARNING: image files in IMAGE_DIR are not touched and become orphans.
    """
    op.drop_table("tours")
