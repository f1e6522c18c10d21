from sqlalchemy.orm import Session

from triphub.domain.exceptions import (
    BookingNotFoundError,
    ConflictError,
    ForbiddenError,
    TicketNotFoundError,
)
from triphub.domain.state_machine import BookingStatus, PaymentStateMachine
from triphub.infrastructure.gateways.payment_gateway import CheckoutSession
from triphub.infrastructure.repositories.booking_repository import BookingRepository
from triphub.infrastructure.repositories.ticket_repository import TicketRepository


class CheckoutService:
    """Opens a hosted checkout for an accepted, unpaid booking."""

    def __init__(self, db: Session, gateway):
        self.db = db
        self.gateway = gateway
        self.booking_repository = BookingRepository(db)
        self.ticket_repository = TicketRepository(db)

    def create_session(self, booking_id: str, customer_email: str) -> CheckoutSession:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError("Booking not found")
        if booking.user_email != customer_email:
            raise ForbiddenError("Booking belongs to another user")
        if booking.booking_status != BookingStatus.ACCEPTED:
            raise ConflictError("Booking has not been accepted by the vendor")
        if PaymentStateMachine.is_settled(booking.payment_status):
            raise ConflictError("Booking is already paid")

        ticket = self.ticket_repository.get_by_id(booking.ticket_id)
        if not ticket:
            raise TicketNotFoundError("Ticket not found")

        # Gateway amounts are in minor units (paise).
        amount = booking.unit_price * booking.quantity * 100

        return self.gateway.create_checkout_session(
            amount=amount,
            customer_email=customer_email,
            description=f"{booking.ticket_title} x {booking.quantity}",
            metadata={
                "booking_id": booking.id,
                "ticket_id": booking.ticket_id,
                "quantity": booking.quantity,
                "customer_email": booking.user_email,
                "vendor_email": booking.vendor_email,
                "ticket_title": booking.ticket_title,
            },
        )
