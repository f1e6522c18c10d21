import pytest

from conftest import make_ticket, make_vendor
from triphub.application.ticket_service import MAX_ADVERTISED_TICKETS, TicketService
from triphub.domain.authorization import Identity, Role
from triphub.domain.exceptions import AdvertiseLimitReachedError, ForbiddenError
from triphub.domain.state_machine import TicketStatus, VendorStatus
from triphub.infrastructure.db.models import Ticket


def test_advertise_within_limit(db):
    ticket = make_ticket(db)

    TicketService(db).set_advertised(ticket.id, True)
    db.commit()

    db.refresh(ticket)
    assert ticket.is_advertised is True


def test_seventh_advertisement_is_refused(db):
    for index in range(MAX_ADVERTISED_TICKETS):
        make_ticket(db, title=f"Featured {index}", is_advertised=True)
    seventh = make_ticket(db, title="One too many")

    with pytest.raises(AdvertiseLimitReachedError):
        TicketService(db).set_advertised(seventh.id, True)
    db.rollback()

    assert db.get(Ticket, seventh.id).is_advertised is False


def test_unadvertise_ignores_limit(db):
    tickets = [
        make_ticket(db, title=f"Featured {index}", is_advertised=True)
        for index in range(MAX_ADVERTISED_TICKETS)
    ]

    TicketService(db).set_advertised(tickets[0].id, False)
    db.commit()

    db.refresh(tickets[0])
    assert tickets[0].is_advertised is False


def test_only_approved_vendors_create_tickets(db):
    make_vendor(db, "pending@example.com", status=VendorStatus.PENDING)
    identity = Identity("pending@example.com", Role.VENDOR)

    with pytest.raises(ForbiddenError):
        TicketService(db).create_ticket(identity, {"title": "Bus", "price": 10, "quantity": 1})


def test_new_ticket_awaits_review(db):
    make_vendor(db, "vendor@example.com", status=VendorStatus.APPROVED)
    identity = Identity("vendor@example.com", Role.VENDOR)

    ticket = TicketService(db).create_ticket(
        identity, {"title": "Bus", "price": 10, "quantity": 3}
    )

    assert ticket.status == TicketStatus.PENDING
    assert ticket.is_visible is True
    assert ticket.is_advertised is False
    assert ticket.vendor_name == "Skyline Travels"


def test_vendor_cannot_edit_foreign_ticket(db):
    ticket = make_ticket(db, vendor_email="owner@example.com")
    intruder = Identity("intruder@example.com", Role.VENDOR)

    with pytest.raises(ForbiddenError):
        TicketService(db).update_ticket(intruder, ticket.id, {"price": 1})


def test_vendor_cannot_self_approve(db):
    ticket = make_ticket(db, vendor_email="owner@example.com", status=TicketStatus.PENDING)
    owner = Identity("owner@example.com", Role.VENDOR)

    with pytest.raises(ForbiddenError):
        TicketService(db).update_ticket(owner, ticket.id, {"status": TicketStatus.APPROVED})
