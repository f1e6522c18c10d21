import logging

from sqlalchemy.orm import Session

from triphub.domain.authorization import Identity, Role
from triphub.domain.exceptions import (
    AdvertiseLimitReachedError,
    ForbiddenError,
    TicketNotFoundError,
)
from triphub.domain.state_machine import TicketStatus, VendorStatus
from triphub.infrastructure.db.models import Ticket
from triphub.infrastructure.repositories.ticket_repository import TicketRepository
from triphub.infrastructure.repositories.vendor_repository import VendorRepository

logger = logging.getLogger(__name__)

MAX_ADVERTISED_TICKETS = 6


class TicketService:

    def __init__(self, db: Session):
        self.db = db
        self.ticket_repository = TicketRepository(db)
        self.vendor_repository = VendorRepository(db)

    def create_ticket(self, identity: Identity, fields: dict) -> Ticket:
        vendor = self.vendor_repository.get_by_email(identity.email)
        if not vendor or vendor.status != VendorStatus.APPROVED:
            raise ForbiddenError("Only approved vendors can add tickets")

        ticket = self.ticket_repository.create_ticket(
            vendor_id=vendor.id,
            vendor_name=vendor.name,
            vendor_email=vendor.email,
            status=TicketStatus.PENDING,
            is_visible=True,
            is_advertised=False,
            **fields,
        )
        self.db.flush()
        return ticket

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self.ticket_repository.get_by_id(ticket_id)
        if not ticket:
            raise TicketNotFoundError("Ticket not found")
        return ticket

    def update_ticket(self, identity: Identity, ticket_id: str, fields: dict) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        self._ensure_can_manage(identity, ticket)

        if "status" in fields and identity.role != Role.ADMIN:
            raise ForbiddenError("Only admins can change ticket status")

        self.ticket_repository.update_fields(ticket, fields)
        self.db.flush()
        return ticket

    def delete_ticket(self, identity: Identity, ticket_id: str) -> None:
        ticket = self.get_ticket(ticket_id)
        self._ensure_can_manage(identity, ticket)
        self.ticket_repository.delete_ticket(ticket.id)

    def set_advertised(self, ticket_id: str, is_advertised: bool) -> Ticket:
        """
        Admission control for the advertised slot cap.

        Known race: the count and the write are separate statements with
        no covering lock, so N concurrent admissions at count 5 can push
        the total to 5 + N.
        """
        ticket = self.get_ticket(ticket_id)

        if is_advertised:
            advertised_count = self.ticket_repository.count_advertised()
            if advertised_count >= MAX_ADVERTISED_TICKETS:
                logger.info("Advertise rejected for %s: limit reached", ticket_id)
                raise AdvertiseLimitReachedError(
                    f"Maximum {MAX_ADVERTISED_TICKETS} tickets can be advertised"
                )

        self.ticket_repository.set_advertised(ticket, is_advertised)
        self.db.flush()
        return ticket

    @staticmethod
    def _ensure_can_manage(identity: Identity, ticket: Ticket) -> None:
        if identity.role == Role.ADMIN:
            return
        if identity.role == Role.VENDOR and ticket.vendor_email == identity.email:
            return
        raise ForbiddenError("Ticket belongs to another vendor")
