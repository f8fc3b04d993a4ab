"""Business logic services."""

from .booking_service import BookingService
from .booking_state_machine import BookingStateMachine
from .capacity_ledger import CapacityLedger
from .catalog_service import CatalogService
from .custom_request_service import CustomRequestService
from .custom_request_state_machine import CustomRequestStateMachine
from .expiry_sweeper import ExpirySweeper
from .participant_service import ParticipantService
from .payment_gateway import PaymentGateway
from .payment_provider import MidtransProvider, PaymentProvider

__all__ = [
    "BookingService",
    "BookingStateMachine",
    "CapacityLedger",
    "CatalogService",
    "CustomRequestService",
    "CustomRequestStateMachine",
    "ExpirySweeper",
    "ParticipantService",
    "PaymentGateway",
    "MidtransProvider",
    "PaymentProvider",
]
