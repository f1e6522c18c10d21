"""Settlement of completed checkout sessions.

A settlement is a short saga run against the store:

    1. mark the booking paid       (conditional update, compensated by -> pending)
    2. reserve ticket inventory    (conditional update, compensated by release)
    3. record the Payment          (unique transaction id)

Each step commits on its own, so an interrupted settlement always leaves a
well-defined intermediate state. When a step reports a failure outcome the
completed steps are compensated in reverse order.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from triphub.domain.exceptions import BookingNotFoundError, UpstreamError
from triphub.infrastructure.db.models import Booking, Payment
from triphub.infrastructure.gateways.payment_gateway import GatewaySession
from triphub.infrastructure.repositories.booking_repository import BookingRepository
from triphub.infrastructure.repositories.payment_repository import PaymentRepository
from triphub.infrastructure.repositories.ticket_repository import TicketRepository

logger = logging.getLogger(__name__)


class SettlementOutcome(str, Enum):
    SUCCESS = "success"
    ALREADY_PROCESSED = "already-processed"
    PAYMENT_INCOMPLETE = "payment-incomplete"
    INSUFFICIENT_INVENTORY = "insufficient-inventory"
    BOOKING_ALREADY_PAID = "booking-already-paid"


@dataclass(frozen=True)
class SettlementResult:
    outcome: SettlementOutcome
    booking_id: str | None = None
    transaction_id: str | None = None
    payment_id: str | None = None


@dataclass
class SettlementContext:
    session: GatewaySession
    booking_id: str
    transaction_id: str
    booking: Booking | None = None
    payment: Payment | None = None


@dataclass(frozen=True)
class SagaStep:
    name: str
    # Returns None to continue, or a terminal outcome to stop and compensate.
    action: Callable[[SettlementContext], SettlementOutcome | None]
    compensation: Callable[[SettlementContext], None] | None = None


class SettlementCoordinator:
    """Turns a paid checkout session into booking, inventory and payment updates."""

    def __init__(self, db: Session, gateway):
        self.db = db
        self.gateway = gateway
        self.booking_repository = BookingRepository(db)
        self.ticket_repository = TicketRepository(db)
        self.payment_repository = PaymentRepository(db)

    def settle(self, session_id: str) -> SettlementResult:
        session = self.gateway.retrieve_session(session_id)

        if not session.is_paid:
            logger.info(
                "Session %s not paid yet (status=%s)", session_id, session.status
            )
            return SettlementResult(SettlementOutcome.PAYMENT_INCOMPLETE)

        booking_id = session.metadata.get("booking_id")
        if not booking_id:
            raise UpstreamError("Checkout session carries no booking reference")

        ctx = SettlementContext(
            session=session,
            booking_id=booking_id,
            transaction_id=session.transaction_id,
        )

        if self.payment_repository.get_by_transaction_id(ctx.transaction_id):
            logger.info("Transaction %s already settled", ctx.transaction_id)
            return self._result(ctx, SettlementOutcome.ALREADY_PROCESSED)

        return self._run(ctx)

    def steps(self) -> tuple[SagaStep, ...]:
        return (
            SagaStep(
                "mark_booking_paid",
                self._mark_booking_paid,
                self._revert_booking_to_pending,
            ),
            SagaStep(
                "reserve_inventory",
                self._reserve_inventory,
                self._release_inventory,
            ),
            SagaStep("record_payment", self._record_payment),
        )

    def _run(self, ctx: SettlementContext) -> SettlementResult:
        completed: list[SagaStep] = []

        for step in self.steps():
            try:
                outcome = step.action(ctx)
            except Exception:
                self.db.rollback()
                logger.exception(
                    "Settlement step %s raised for booking %s", step.name, ctx.booking_id
                )
                self._compensate(completed, ctx)
                raise

            if outcome is not None:
                self.db.rollback()
                logger.warning(
                    "Settlement of booking %s stopped at %s: %s",
                    ctx.booking_id,
                    step.name,
                    outcome.value,
                )
                self._compensate(completed, ctx)
                return self._result(ctx, outcome)

            self.db.commit()
            completed.append(step)

        logger.info(
            "Booking %s settled with transaction %s", ctx.booking_id, ctx.transaction_id
        )
        return self._result(ctx, SettlementOutcome.SUCCESS)

    def _compensate(self, completed: list[SagaStep], ctx: SettlementContext) -> None:
        for step in reversed(completed):
            if step.compensation is None:
                continue
            logger.info("Compensating %s for booking %s", step.name, ctx.booking_id)
            step.compensation(ctx)
            self.db.commit()

    # -----------------------------
    # Steps
    # -----------------------------
    def _mark_booking_paid(self, ctx: SettlementContext) -> SettlementOutcome | None:
        if self.booking_repository.mark_paid(ctx.booking_id):
            return None

        if self.booking_repository.get_by_id(ctx.booking_id) is None:
            raise BookingNotFoundError(f"Booking {ctx.booking_id} not found")
        return SettlementOutcome.BOOKING_ALREADY_PAID

    def _reserve_inventory(self, ctx: SettlementContext) -> SettlementOutcome | None:
        ctx.booking = self.booking_repository.get_by_id(ctx.booking_id)
        if ctx.booking is None:
            raise BookingNotFoundError(f"Booking {ctx.booking_id} not found")

        reserved = self.ticket_repository.reserve(
            ctx.booking.ticket_id,
            ctx.booking.quantity,
        )
        if not reserved:
            return SettlementOutcome.INSUFFICIENT_INVENTORY
        return None

    def _record_payment(self, ctx: SettlementContext) -> SettlementOutcome | None:
        booking = ctx.booking
        ctx.payment = self.payment_repository.create_payment(
            amount=ctx.session.amount,
            currency=ctx.session.currency,
            customer_email=booking.user_email,
            vendor_email=booking.vendor_email,
            ticket_title=booking.ticket_title,
            booking_id=booking.id,
            transaction_id=ctx.transaction_id,
        )
        try:
            self.db.flush()
        except IntegrityError:
            ctx.payment = None
            return SettlementOutcome.ALREADY_PROCESSED
        return None

    # -----------------------------
    # Compensations
    # -----------------------------
    def _revert_booking_to_pending(self, ctx: SettlementContext) -> None:
        self.booking_repository.mark_pending_retry(ctx.booking_id)

    def _release_inventory(self, ctx: SettlementContext) -> None:
        self.ticket_repository.release(ctx.booking.ticket_id, ctx.booking.quantity)

    def _result(
        self,
        ctx: SettlementContext,
        outcome: SettlementOutcome,
    ) -> SettlementResult:
        return SettlementResult(
            outcome=outcome,
            booking_id=ctx.booking_id,
            transaction_id=ctx.transaction_id,
            payment_id=ctx.payment.id if ctx.payment else None,
        )
