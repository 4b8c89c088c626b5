"""SQLAlchemy models for the FrontDesk API.

All models are imported here so that ``Base.metadata`` knows every table
before ``create_all`` runs. If you add a new model, import it in this file.
"""

from frontdesk.models.booking import (
    AdditionalGuest,
    Booking,
    BookingDocument,
    BookingStatus,
    DocumentType,
    PaymentStatus,
)
from frontdesk.models.guest import Guest
from frontdesk.models.guest_summary import GuestSummary
from frontdesk.models.user import User

__all__ = [
    "AdditionalGuest",
    "Booking",
    "BookingDocument",
    "BookingStatus",
    "DocumentType",
    "Guest",
    "GuestSummary",
    "PaymentStatus",
    "User",
]
