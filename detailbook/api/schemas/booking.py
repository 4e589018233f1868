from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from detailbook.models.booking import BookingPublic
from detailbook.models.catalog import AddOnPublic, ServicePublic


class CatalogResponse(BaseModel):
    services: list[ServicePublic]
    add_ons: list[AddOnPublic]


class SlotInfo(BaseModel):
    start_local: datetime
    end_local: datetime
    start_utc: datetime
    end_utc: datetime
    label: str


class AvailabilityResponse(BaseModel):
    date: str  # YYYY-MM-DD, local to the business
    service_id: str
    add_on_ids: list[str]
    duration_minutes: int
    time_zone: str
    slots: list[SlotInfo]


class BookingRequest(BaseModel):
    service_id: str
    add_on_ids: list[str] = []
    start_at_utc: datetime
    end_at_utc: datetime | None = None  # optional; checked against the server-derived end
    customer_name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(min_length=7, max_length=40)
    address: str = Field(min_length=1, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("customer_name", "phone", "address", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("add_on_ids")
    @classmethod
    def _no_duplicates(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("add_on_ids must not contain duplicates")
        return v


class BookingResponse(BaseModel):
    booking: BookingPublic


class BookingListResponse(BaseModel):
    date: str
    bookings: list[BookingPublic]
