"""Models module exporting all database models."""

from .booking import INACTIVE_BOOKING_STATUSES, Booking, BookingParticipant, BookingStatus
from .custom_request import CustomRequestStatus, CustomTourRequest, PriceEstimateHistory
from .departure import Departure, DepartureGroup
from .participant import Gender, Participant
from .tour_package import TourPackage, TripType

__all__ = [
    # Catalogue entities
    "TourPackage",
    "TripType",
    "Departure",
    "DepartureGroup",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingParticipant",
    "INACTIVE_BOOKING_STATUSES",
    "Participant",
    "Gender",

    # Custom request entities
    "CustomTourRequest",
    "CustomRequestStatus",
    "PriceEstimateHistory",
]
