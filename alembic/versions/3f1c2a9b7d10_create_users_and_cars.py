"""create users and cars tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-17 09:12:31.402118
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg

# revision identifiers, used by Alembic.
revision = "3f1c2a9b7d10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
    )
    op.create_table(
        "cars",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            pg.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "tags",
            pg.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column("images", pg.ARRAY(sa.Text())),
        sa.Column("cover_image", sa.Text()),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "images IS NULL OR cardinality(images) <= 10", name="ck_cars_max_images"
        ),
    )
    op.create_index("ix_cars_user_id", "cars", ["user_id"])
    op.create_index("ix_cars_created_at", "cars", ["created_at"])
    op.execute("CREATE INDEX ix_cars_tags ON cars USING gin (tags)")


def downgrade() -> None:
    op.drop_index("ix_cars_tags", table_name="cars")
    op.drop_index("ix_cars_created_at", table_name="cars")
    op.drop_index("ix_cars_user_id", table_name="cars")
    op.drop_table("cars")
    op.drop_table("users")
