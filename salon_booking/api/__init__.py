"""API package initialization."""
from salon_booking.api.models import ErrorResponse, CreateReservationRequest, ReservationResponse

__all__ = ["ErrorResponse", "CreateReservationRequest", "ReservationResponse"]
