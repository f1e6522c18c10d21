import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triphub.domain.authorization import Role
from triphub.domain.exceptions import (
    TripHubError,
    VendorNotFoundError,
    VendorUpdateFailedError,
)
from triphub.domain.state_machine import VendorStatus
from triphub.infrastructure.db.models import Vendor
from triphub.infrastructure.repositories.results import UpdateSummary
from triphub.infrastructure.repositories.ticket_repository import TicketRepository
from triphub.infrastructure.repositories.user_repository import UserRepository
from triphub.infrastructure.repositories.vendor_repository import VendorRepository

logger = logging.getLogger(__name__)

ADMIN_SETTABLE_STATUSES = {
    VendorStatus.APPROVED,
    VendorStatus.REJECTED,
    VendorStatus.PENDING,
}


@dataclass(frozen=True)
class FraudCascadeResult:
    vendor: UpdateSummary
    user: UpdateSummary
    tickets: UpdateSummary


class VendorService:
    """Vendor applications, approval and fraud moderation."""

    def __init__(self, db: Session):
        self.db = db
        self.vendor_repository = VendorRepository(db)
        self.user_repository = UserRepository(db)
        self.ticket_repository = TicketRepository(db)

    def apply(self, email: str, name: str, image: str | None = None) -> Vendor:
        vendor = self.vendor_repository.create_vendor(email=email, name=name, image=image)
        self.db.flush()
        logger.info("Vendor application received from %s", email)
        return vendor

    def set_status(self, vendor_id: str, new_status: VendorStatus) -> Vendor:
        """
        Vendor status and the mirrored user's role change together
        or not at all. Only "approved" touches the role.
        """
        if new_status not in ADMIN_SETTABLE_STATUSES:
            raise ValueError(f"Vendor status {new_status.value} cannot be set here")

        vendor = self.vendor_repository.get_by_id(vendor_id)
        if not vendor:
            raise VendorNotFoundError("Vendor not found")

        try:
            self.vendor_repository.update_status(vendor, new_status)
            if new_status == VendorStatus.APPROVED:
                # An applicant may never have registered a user row.
                self.user_repository.get_or_create(vendor.email, name=vendor.name)
                self.db.flush()
                self.user_repository.set_role(vendor.email, Role.VENDOR)
            self.db.commit()
        except (SQLAlchemyError, TripHubError) as exc:
            self.db.rollback()
            logger.exception("Vendor %s status update rolled back", vendor_id)
            raise VendorUpdateFailedError("Vendor status update failed") from exc

        logger.info("Vendor %s set to %s", vendor_id, new_status.value)
        return vendor

    def flag_fraud(self, vendor_email: str) -> FraudCascadeResult:
        """
        Best-effort batch of three atomic updates, each committed on its own.
        Re-running on a fraud vendor changes nothing and still succeeds.
        """
        if not self.vendor_repository.get_by_email(vendor_email):
            raise VendorNotFoundError("Vendor not found")

        vendor_summary = self.vendor_repository.mark_fraud(vendor_email)
        self.db.commit()

        user_summary = self.user_repository.set_role(vendor_email, Role.USER)
        self.db.commit()

        ticket_summary = self.ticket_repository.hide_and_block_by_vendor(vendor_email)
        self.db.commit()

        logger.warning(
            "Vendor %s flagged as fraud: %s ticket(s) hidden",
            vendor_email,
            ticket_summary.matched,
        )
        return FraudCascadeResult(
            vendor=vendor_summary,
            user=user_summary,
            tickets=ticket_summary,
        )
