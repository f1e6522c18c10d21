# triphub/infrastructure/repositories/payment_repository.py

from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy import select

from triphub.infrastructure.db.models import Payment


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_transaction_id(self, transaction_id: str) -> Payment | None:
        stmt = select(Payment).where(Payment.transaction_id == transaction_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_payments(self, customer_email: str | None = None) -> list[Payment]:
        stmt = select(Payment).order_by(Payment.paid_at.desc())
        if customer_email:
            stmt = stmt.where(Payment.customer_email == customer_email)
        return list(self.db.execute(stmt).scalars().all())

    def create_payment(
        self,
        amount: int,
        currency: str,
        customer_email: str,
        vendor_email: str,
        ticket_title: str,
        booking_id: str,
        transaction_id: str,
    ) -> Payment:
        payment = Payment(
            amount=amount,
            currency=currency,
            customer_email=customer_email,
            vendor_email=vendor_email,
            ticket_title=ticket_title,
            booking_id=booking_id,
            transaction_id=transaction_id,
            payment_status="paid",
            paid_at=datetime.now(timezone.utc),
        )
        self.db.add(payment)
        return payment
