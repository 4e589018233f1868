from detailbook.models.catalog import AddOn, AddOnPublic, PricePublic, Service, ServicePublic
from detailbook.models.booking import (
    BookedAddOnPublic,
    BookedServicePublic,
    Booking,
    BookingCreate,
    BookingPublic,
    BookingStatus,
)

__all__ = [
    "AddOn",
    "AddOnPublic",
    "PricePublic",
    "Service",
    "ServicePublic",
    "BookedAddOnPublic",
    "BookedServicePublic",
    "Booking",
    "BookingCreate",
    "BookingPublic",
    "BookingStatus",
]
