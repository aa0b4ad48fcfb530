"""Initial schema: users, listings, bookings with the booking exclusion constraint.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Mirror of the identity service's users, for guest/host summaries
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_host", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "listings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("host_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_guests", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="check_listing_price_positive"),
        sa.CheckConstraint("max_guests > 0", name="check_listing_max_guests_positive"),
    )
    op.create_index("ix_listings_host_id", "listings", ["host_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("listing_id", sa.String(64), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'usd'")),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        *_timestamps(),
        sa.UniqueConstraint("payment_intent_id", name="uq_bookings_payment_intent_id"),
        sa.CheckConstraint("check_in < check_out", name="check_booking_range_positive"),
        sa.CheckConstraint("guests > 0", name="check_booking_guests_positive"),
        sa.CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    # Serves the availability query:
    # WHERE listing_id = ? AND status IN (...) AND check_in < ? AND check_out > ?
    op.create_index("ix_bookings_listing_status_check_in", "bookings", ["listing_id", "status", "check_in"])

    # EXCLUSION CONSTRAINT: no two active bookings of a listing may overlap.
    # '[)' makes ranges half-open so back-to-back stays are allowed.
    # Application-level locking keeps this from firing in normal operation;
    # it is what makes a double booking impossible rather than unlikely.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        """
        ALTER TABLE bookings
        ADD CONSTRAINT excl_bookings_active_overlap
        EXCLUDE USING gist (
            listing_id WITH =,
            daterange(check_in, check_out, '[)') WITH &&
        )
        WHERE (status IN ('PENDING', 'CONFIRMED'))
        """
    )


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("listings")
    op.drop_table("users")
