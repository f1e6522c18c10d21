# triphub/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from triphub.domain.exceptions import InvalidStateTransitionError


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    # Transient retry marker: the booking was briefly marked paid
    # but settlement could not complete.
    PENDING = "pending"


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStateMachine:
    """
    Lifecycle controller for a booking's payment status.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.UNPAID: {
            PaymentStatus.PAID,
        },
        PaymentStatus.PAID: {
            PaymentStatus.PENDING,
        },
        PaymentStatus.PENDING: {
            PaymentStatus.PAID,
        },
    }

    @classmethod
    def can_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def settleable_from(cls) -> Set[PaymentStatus]:
        """
        Statuses from which a settlement attempt may mark the booking paid.
        """
        return {
            status
            for status, targets in cls._ALLOWED_TRANSITIONS.items()
            if PaymentStatus.PAID in targets
        }

    @classmethod
    def is_settled(cls, status: PaymentStatus) -> bool:
        cls._ensure_valid_status(status)
        return status == PaymentStatus.PAID

    @staticmethod
    def _ensure_valid_status(status: PaymentStatus) -> None:
        if not isinstance(status, PaymentStatus):
            raise TypeError(
                f"Expected PaymentStatus, got {type(status)}"
            )


class BookingStateMachine:
    """Vendor-controlled booking decision: a pending booking is accepted or rejected once."""

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.ACCEPTED,
            BookingStatus.REJECTED,
        },
        BookingStatus.ACCEPTED: set(),
        BookingStatus.REJECTED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )


class TicketStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class VendorStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FRAUD = "fraud"
