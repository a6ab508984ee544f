from app.api.schemas.interviewers import (
    InterviewerCreate,
    InterviewerUpdate,
    InterviewerResponse,
    InterviewersListResponse,
)
from app.api.schemas.booking_requests import (
    BookingRequestCreate,
    BookingRequestResponse,
    BookingRequestDetailsResponse,
    WindowIn,
    AvailabilitySubmit,
    SlotResponse,
)
from app.api.schemas.public_links import (
    AllowListEntryIn,
    PublicLinkCreate,
    PublicLinkResponse,
    StudentBookingResponse,
    ClaimRequest,
)
from app.api.schemas.bookings import (
    CancelBookingRequest,
    StudentBookingUpdate,
    FeedResponse,
)

__all__ = [
    "InterviewerCreate",
    "InterviewerUpdate",
    "InterviewerResponse",
    "InterviewersListResponse",
    "BookingRequestCreate",
    "BookingRequestResponse",
    "BookingRequestDetailsResponse",
    "WindowIn",
    "AvailabilitySubmit",
    "SlotResponse",
    "AllowListEntryIn",
    "PublicLinkCreate",
    "PublicLinkResponse",
    "StudentBookingResponse",
    "ClaimRequest",
    "CancelBookingRequest",
    "StudentBookingUpdate",
    "FeedResponse",
]
