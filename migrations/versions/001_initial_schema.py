"""Initial schema: services, add_ons, bookings; seed the default menu.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    services = op.create_table(
        "services",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        sa.CheckConstraint("price_cents >= 0", name="ck_services_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )

    add_ons = op.create_table(
        "add_ons",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("duration_minutes >= 0", name="ck_add_ons_duration_non_negative"),
        sa.CheckConstraint("price_cents >= 0", name="ck_add_ons_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("service_id", sa.String(), nullable=False),
        sa.Column("add_on_ids", sa.JSON(), nullable=False),
        sa.Column("add_on_prices", sa.JSON(), nullable=False),
        sa.Column("start_at_utc", sa.DateTime(), nullable=False),
        sa.Column("end_at_utc", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="confirmed"),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("end_at_utc > start_at_utc", name="ck_bookings_interval"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_service_id"), "bookings", ["service_id"], unique=False)
    op.create_index(op.f("ix_bookings_start_at_utc"), "bookings", ["start_at_utc"], unique=False)
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"], unique=False)

    op.bulk_insert(
        services,
        [
            {"id": "basic-wash", "name": "Basic Wash", "duration_minutes": 60, "price_cents": 4900, "sort_order": 1,
             "active": True, "description": "Exterior hand wash, wheels, windows and a quick interior vacuum."},
            {"id": "premium-detail", "name": "Premium Detail", "duration_minutes": 180, "price_cents": 14900,
             "sort_order": 2, "active": True,
             "description": "Clay bar, wax, interior deep clean and leather conditioning."},
            {"id": "luxury-package", "name": "Luxury Package", "duration_minutes": 300, "price_cents": 29900,
             "sort_order": 3, "active": True,
             "description": "One-step paint correction, ceramic coating and headlight restoration."},
        ],
    )
    op.bulk_insert(
        add_ons,
        [
            {"id": "engine-bay", "name": "Engine Bay Cleaning", "duration_minutes": 30, "price_cents": 3900,
             "sort_order": 1, "active": True},
            {"id": "pet-hair", "name": "Pet Hair Removal", "duration_minutes": 30, "price_cents": 2900,
             "sort_order": 2, "active": True},
            {"id": "headlights", "name": "Headlight Restoration", "duration_minutes": 45, "price_cents": 5900,
             "sort_order": 3, "active": True},
            {"id": "odor", "name": "Odor Elimination", "duration_minutes": 30, "price_cents": 3500,
             "sort_order": 4, "active": True},
        ],
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_bookings_status"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_start_at_utc"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_service_id"), table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("add_ons")
    op.drop_table("services")
