from sqlalchemy.orm import Session

from triphub.domain.exceptions import (
    BookingNotFoundError,
    ForbiddenError,
    InsufficientInventoryError,
    TicketNotFoundError,
)
from triphub.domain.state_machine import BookingStateMachine, BookingStatus, TicketStatus
from triphub.infrastructure.db.models import Booking
from triphub.infrastructure.repositories.booking_repository import BookingRepository
from triphub.infrastructure.repositories.ticket_repository import TicketRepository


class BookingService:
    """Application service coordinating booking workflow."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.ticket_repository = TicketRepository(db)

    def create_booking(
        self,
        user_email: str,
        ticket_id: str,
        quantity: int,
    ) -> Booking:
        ticket = self.ticket_repository.get_by_id(ticket_id)
        if not ticket or not ticket.is_visible or ticket.status != TicketStatus.APPROVED:
            raise TicketNotFoundError("Ticket not found")

        # Advisory only: stock is taken at settlement time.
        if ticket.quantity < quantity:
            raise InsufficientInventoryError("Not enough tickets available")

        booking = self.booking_repository.create_booking(
            ticket=ticket,
            user_email=user_email,
            quantity=quantity,
        )
        self.db.flush()
        return booking

    def decide(
        self,
        vendor_email: str,
        booking_id: str,
        new_status: BookingStatus,
    ) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)

        if not booking:
            raise BookingNotFoundError("Booking not found")
        if booking.vendor_email != vendor_email:
            raise ForbiddenError("Booking belongs to another vendor")

        BookingStateMachine.validate_transition(booking.booking_status, new_status)
        self.booking_repository.update_booking_status(booking, new_status)

        self.db.flush()
        self.db.refresh(booking)
        return booking
