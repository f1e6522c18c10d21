# triphub/infrastructure/repositories/ticket_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update, delete, func, or_

from triphub.domain.state_machine import TicketStatus
from triphub.infrastructure.db.models import Ticket
from triphub.infrastructure.repositories.results import UpdateSummary

EDITABLE_FIELDS = {
    "title",
    "from_location",
    "to_location",
    "transport_type",
    "image",
    "perks",
    "status",
    "price",
    "quantity",
    "departure_date",
    "departure_time",
}


class TicketRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, ticket_id: str) -> Ticket | None:
        stmt = select(Ticket).where(Ticket.id == ticket_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_tickets(
        self,
        vendor_email: str | None = None,
        status: TicketStatus | None = None,
        visible_only: bool = False,
    ) -> list[Ticket]:
        stmt = select(Ticket).order_by(Ticket.created_at.desc())
        if vendor_email:
            stmt = stmt.where(Ticket.vendor_email == vendor_email)
        if status:
            stmt = stmt.where(Ticket.status == status)
        if visible_only:
            stmt = stmt.where(Ticket.is_visible.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def list_latest(self, limit: int = 6) -> list[Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.status == TicketStatus.APPROVED)
            .where(Ticket.is_visible.is_(True))
            .order_by(Ticket.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_advertised(self) -> list[Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.status == TicketStatus.APPROVED)
            .where(Ticket.is_visible.is_(True))
            .where(Ticket.is_advertised.is_(True))
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_advertised(self) -> int:
        stmt = select(func.count()).select_from(Ticket).where(Ticket.is_advertised.is_(True))
        return self.db.execute(stmt).scalar_one()

    def create_ticket(self, **fields) -> Ticket:
        ticket = Ticket(**fields)
        self.db.add(ticket)
        return ticket

    def update_fields(self, ticket: Ticket, fields: dict) -> Ticket:
        for name, value in fields.items():
            if name not in EDITABLE_FIELDS:
                raise ValueError(f"Field {name} cannot be updated")
            setattr(ticket, name, value)
        return ticket

    def set_advertised(self, ticket: Ticket, is_advertised: bool) -> None:
        ticket.is_advertised = is_advertised

    def delete_ticket(self, ticket_id: str) -> bool:
        result = self.db.execute(delete(Ticket).where(Ticket.id == ticket_id))
        return result.rowcount > 0

    # -----------------------------
    # Inventory ledger
    # -----------------------------
    def reserve(self, ticket_id: str, quantity: int) -> bool:
        """
        UPDATE ... SET quantity = quantity - n WHERE quantity >= n
        Single conditional statement, no read-modify-write.
        """
        if quantity <= 0:
            raise ValueError("Reserved quantity must be positive")

        stmt = (
            update(Ticket)
            .where(Ticket.id == ticket_id)
            .where(Ticket.quantity >= quantity)
            .values(quantity=Ticket.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def release(self, ticket_id: str, quantity: int) -> bool:
        if quantity <= 0:
            raise ValueError("Released quantity must be positive")

        stmt = (
            update(Ticket)
            .where(Ticket.id == ticket_id)
            .values(quantity=Ticket.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    # -----------------------------
    # Moderation
    # -----------------------------
    def hide_and_block_by_vendor(self, vendor_email: str) -> UpdateSummary:
        matched = self.db.execute(
            select(func.count())
            .select_from(Ticket)
            .where(Ticket.vendor_email == vendor_email)
        ).scalar_one()

        stmt = (
            update(Ticket)
            .where(Ticket.vendor_email == vendor_email)
            .where(
                or_(
                    Ticket.is_visible.is_(True),
                    Ticket.is_advertised.is_(True),
                    Ticket.status != TicketStatus.BLOCKED,
                )
            )
            .values(is_visible=False, is_advertised=False, status=TicketStatus.BLOCKED)
            .execution_options(synchronize_session=False)
        )
        modified = self.db.execute(stmt).rowcount
        return UpdateSummary(matched=matched, modified=modified)
