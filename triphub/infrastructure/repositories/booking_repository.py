# triphub/infrastructure/repositories/booking_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update

from triphub.infrastructure.db.models import Booking, Ticket
from triphub.domain.state_machine import BookingStatus, PaymentStateMachine, PaymentStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_bookings(
        self,
        user_email: str | None = None,
        vendor_email: str | None = None,
        booking_status: BookingStatus | None = None,
    ) -> list[Booking]:
        stmt = select(Booking).order_by(Booking.created_at.desc())
        if user_email:
            stmt = stmt.where(Booking.user_email == user_email)
        if vendor_email:
            stmt = stmt.where(Booking.vendor_email == vendor_email)
        if booking_status:
            stmt = stmt.where(Booking.booking_status == booking_status)
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        ticket: Ticket,
        user_email: str,
        quantity: int,
    ) -> Booking:

        booking = Booking(
            ticket_id=ticket.id,
            ticket_title=ticket.title,
            user_email=user_email,
            vendor_email=ticket.vendor_email,
            quantity=quantity,
            unit_price=ticket.price,
            booking_status=BookingStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
        )

        self.db.add(booking)
        return booking

    def update_booking_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.booking_status = new_status

    def mark_paid(self, booking_id: str) -> bool:
        """
        Conditional update: anything-but-paid -> paid.
        Returns False when the booking is already paid (or absent).
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.payment_status.in_(sorted(PaymentStateMachine.settleable_from())))
            .values(payment_status=PaymentStatus.PAID)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def mark_pending_retry(self, booking_id: str) -> bool:
        """Conditional update: paid -> pending (settlement compensation)."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.payment_status == PaymentStatus.PAID)
            .values(payment_status=PaymentStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1
