from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from detailbook.core.clock import utc_naive_now
from detailbook.models.catalog import PricePublic


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _new_booking_id() -> str:
    return uuid4().hex


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    id: str = Field(default_factory=_new_booking_id, primary_key=True)
    service_id: str = Field(index=True)
    add_on_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Add-on id -> price in cents at booking time
    add_on_prices: dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    # Naive UTC; end excludes the inter-job buffer, which is applied at check time
    start_at_utc: datetime = Field(index=True, sa_type=DateTime())
    end_at_utc: datetime = Field(sa_type=DateTime())
    # Frozen at creation so later catalog edits never change an existing booking
    duration_minutes: int
    price_cents: int
    status: str = Field(default=BookingStatus.CONFIRMED.value, index=True)
    customer_name: str
    email: str
    phone: str
    address: str
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    cancelled_at: datetime | None = Field(default=None, sa_type=DateTime())

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value


class BookingCreate(SQLModel):
    service_id: str
    add_on_ids: list[str] = []
    start_at_utc: datetime
    end_at_utc: datetime | None = None
    customer_name: str
    email: str
    phone: str
    address: str
    notes: str | None = None


class BookedServicePublic(SQLModel):
    id: str
    name: str
    duration_minutes: int


class BookedAddOnPublic(SQLModel):
    id: str
    name: str
    price: PricePublic


class BookingPublic(SQLModel):
    id: str
    status: str
    service_id: str
    add_on_ids: list[str]
    start_at_utc: datetime
    end_at_utc: datetime
    start_local: datetime
    end_local: datetime
    duration_minutes: int
    price_cents: int
    price_formatted: str
    customer_name: str
    email: str
    phone: str
    address: str
    notes: str | None = None
    created_at: datetime
    cancelled_at: datetime | None = None
    service: BookedServicePublic
    add_ons: list[BookedAddOnPublic] = []
