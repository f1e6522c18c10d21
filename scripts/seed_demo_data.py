from datetime import datetime, timedelta

from sqlalchemy import select

from triphub.domain.authorization import Role
from triphub.domain.state_machine import TicketStatus, VendorStatus
from triphub.infrastructure.db.models import Base, Ticket, User, Vendor
from triphub.infrastructure.db.session import engine, get_db_session

ADMIN_EMAIL = "admin@triphub.test"
VENDOR_EMAIL = "skyline@triphub.test"


def _departure(days_from_now: int) -> str:
    return (datetime.now() + timedelta(days=days_from_now)).strftime("%Y-%m-%d")


def seed_accounts(db) -> Vendor:
    for email, role in ((ADMIN_EMAIL, Role.ADMIN), (VENDOR_EMAIL, Role.VENDOR)):
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user:
            user.role = role
        else:
            db.add(User(email=email, role=role))

    vendor = db.execute(
        select(Vendor).where(Vendor.email == VENDOR_EMAIL)
    ).scalar_one_or_none()
    if vendor:
        vendor.status = VendorStatus.APPROVED
    else:
        vendor = Vendor(email=VENDOR_EMAIL, name="Skyline Travels", status=VendorStatus.APPROVED)
        db.add(vendor)
    db.flush()
    return vendor


def seed_tickets(db, vendor: Vendor) -> None:
    ticket_defs = [
        {
            "title": "Dhaka to Cox's Bazar Night Coach",
            "from_location": "Dhaka",
            "to_location": "Cox's Bazar",
            "transport_type": "bus",
            "price": 1800,
            "quantity": 40,
            "departure_date": _departure(5),
            "departure_time": "22:30",
        },
        {
            "title": "Dhaka to Sylhet Intercity",
            "from_location": "Dhaka",
            "to_location": "Sylhet",
            "transport_type": "train",
            "price": 650,
            "quantity": 120,
            "departure_date": _departure(3),
            "departure_time": "06:40",
        },
        {
            "title": "Chattogram to Dhaka Morning Flight",
            "from_location": "Chattogram",
            "to_location": "Dhaka",
            "transport_type": "plane",
            "price": 5200,
            "quantity": 18,
            "departure_date": _departure(7),
            "departure_time": "09:15",
        },
    ]

    for item in ticket_defs:
        existing = db.execute(
            select(Ticket)
            .where(Ticket.title == item["title"])
            .where(Ticket.vendor_email == vendor.email)
        ).scalar_one_or_none()
        if existing:
            existing.price = item["price"]
            existing.quantity = item["quantity"]
            existing.status = TicketStatus.APPROVED
            continue

        db.add(
            Ticket(
                vendor_id=vendor.id,
                vendor_name=vendor.name,
                vendor_email=vendor.email,
                status=TicketStatus.APPROVED,
                is_visible=True,
                is_advertised=False,
                **item,
            )
        )


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        vendor = seed_accounts(db)
        seed_tickets(db, vendor)
    print("Seed complete: admin, Skyline Travels vendor and three approved tickets added.")


if __name__ == "__main__":
    main()
