from dataclasses import dataclass
from enum import Enum


class RejectionKind(str, Enum):
    UNKNOWN_SERVICE = "unknown_service"
    UNKNOWN_ADD_ON = "unknown_add_on"
    INVALID_SLOT = "invalid_slot"
    SLOT_NO_LONGER_AVAILABLE = "slot_no_longer_available"
    STORE_UNAVAILABLE = "store_unavailable"


_HTTP_STATUS = {
    RejectionKind.UNKNOWN_SERVICE: 400,
    RejectionKind.UNKNOWN_ADD_ON: 400,
    RejectionKind.INVALID_SLOT: 422,
    RejectionKind.SLOT_NO_LONGER_AVAILABLE: 409,
    RejectionKind.STORE_UNAVAILABLE: 503,
}

SLOT_TAKEN_MESSAGE = "Sorry, that time was just booked by someone else. Please pick another time."
STORE_UNAVAILABLE_MESSAGE = "We couldn't reach the booking calendar. Please try again in a moment."


@dataclass(frozen=True)
class Rejection:
    """A recoverable booking outcome the UI renders as a retry prompt."""

    kind: RejectionKind
    message: str

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]

    def as_detail(self) -> dict[str, str]:
        return {"code": self.kind.value, "message": self.message}


class StoreUnavailableError(Exception):
    """The booking store could not be read or written."""

    def __init__(self, message: str = STORE_UNAVAILABLE_MESSAGE) -> None:
        super().__init__(message)
        self.message = message

    def to_rejection(self) -> Rejection:
        return Rejection(RejectionKind.STORE_UNAVAILABLE, self.message)
