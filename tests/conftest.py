import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from triphub.api.dependencies import get_db, get_identity_provider, get_payment_gateway
from triphub.domain.authorization import Role
from triphub.domain.exceptions import AuthorizationError, UpstreamError
from triphub.domain.state_machine import (
    BookingStatus,
    PaymentStatus,
    TicketStatus,
    VendorStatus,
)
from triphub.infrastructure.db.models import Base, Booking, Ticket, User, Vendor
from triphub.infrastructure.gateways.payment_gateway import CheckoutSession, GatewaySession
from triphub.main import app


class FakePaymentGateway:
    """In-memory stand-in for the hosted checkout provider."""

    def __init__(self):
        self.sessions: dict[str, dict] = {}
        self.created: list[dict] = []

    def create_checkout_session(self, amount, customer_email, description, metadata):
        session_id = f"plink_{len(self.sessions) + 1}"
        self.sessions[session_id] = {
            "status": "created",
            "amount": amount,
            "currency": "INR",
            "metadata": {key: str(value) for key, value in metadata.items()},
            "payment_ids": (),
        }
        self.created.append({"id": session_id, "customer_email": customer_email})
        return CheckoutSession(id=session_id, url=f"https://rzp.test/{session_id}")

    def add_session(self, session_id, booking_id, amount=1000, status="paid", payment_id=None):
        self.sessions[session_id] = {
            "status": status,
            "amount": amount,
            "currency": "INR",
            "metadata": {"booking_id": booking_id},
            "payment_ids": (payment_id,) if payment_id else (),
        }

    def pay(self, session_id, payment_id):
        self.sessions[session_id]["status"] = "paid"
        self.sessions[session_id]["payment_ids"] = (payment_id,)

    def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise UpstreamError("Payment gateway session lookup failed")
        data = self.sessions[session_id]
        return GatewaySession(
            id=session_id,
            status=data["status"],
            amount=data["amount"],
            currency=data["currency"],
            metadata=dict(data["metadata"]),
            payment_ids=data["payment_ids"],
        )


class FakeIdentityProvider:
    """Tokens are simply "token-<email>"."""

    def verify_token(self, token):
        if not token.startswith("token-"):
            raise AuthorizationError("Invalid or expired token")
        return token[len("token-"):]


def auth(email: str) -> dict:
    return {"Authorization": f"Bearer token-{email}"}


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def gateway():
    return FakePaymentGateway()


@pytest.fixture()
def client(session_factory, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_identity_provider] = lambda: FakeIdentityProvider()
    yield TestClient(app)
    app.dependency_overrides.clear()


# -----------------------------
# Factories
# -----------------------------
def make_user(db, email, role=Role.USER):
    user = User(email=email, role=role)
    db.add(user)
    db.commit()
    return user


def make_vendor(db, email, status=VendorStatus.PENDING, name="Skyline Travels"):
    vendor = Vendor(email=email, name=name, status=status)
    db.add(vendor)
    db.commit()
    return vendor


def make_ticket(
    db,
    vendor_email="vendor@example.com",
    quantity=10,
    price=500,
    status=TicketStatus.APPROVED,
    title="Dhaka to Sylhet",
    is_advertised=False,
):
    ticket = Ticket(
        title=title,
        vendor_email=vendor_email,
        price=price,
        quantity=quantity,
        status=status,
        is_visible=True,
        is_advertised=is_advertised,
    )
    db.add(ticket)
    db.commit()
    return ticket


def make_booking(
    db,
    ticket,
    quantity=1,
    user_email="traveller@example.com",
    booking_status=BookingStatus.ACCEPTED,
    payment_status=PaymentStatus.UNPAID,
):
    booking = Booking(
        ticket_id=ticket.id,
        ticket_title=ticket.title,
        user_email=user_email,
        vendor_email=ticket.vendor_email,
        quantity=quantity,
        unit_price=ticket.price,
        booking_status=booking_status,
        payment_status=payment_status,
    )
    db.add(booking)
    db.commit()
    return booking
