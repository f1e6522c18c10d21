# triphub/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Text,
    UniqueConstraint,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from uuid import uuid4

from triphub.infrastructure.db.session import Base
from triphub.domain.authorization import Role
from triphub.domain.state_machine import (
    BookingStatus,
    PaymentStatus,
    TicketStatus,
    VendorStatus,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    photo: Mapped[str | None] = mapped_column(String(512), nullable=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", values_callable=_enum_values),
        nullable=False,
        default=Role.USER,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Vendor(Base):
    """
    Vendor application mirroring a User by email.
    Status "fraud" implies the mirrored user is downgraded
    and every ticket of the vendor is hidden and blocked.
    """

    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    image: Mapped[str | None] = mapped_column(String(512), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[VendorStatus] = mapped_column(
        Enum(VendorStatus, name="vendor_status", values_callable=_enum_values),
        nullable=False,
        default=VendorStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    vendor_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    from_location: Mapped[str | None] = mapped_column(String(128), nullable=True)
    to_location: Mapped[str | None] = mapped_column(String(128), nullable=True)
    transport_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    image: Mapped[str | None] = mapped_column(String(512), nullable=True)
    perks: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus, name="ticket_status", values_callable=_enum_values),
        nullable=False,
        default=TicketStatus.PENDING,
    )
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_advertised: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    departure_date: Mapped[str | None] = mapped_column(String(16), nullable=True)
    departure_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_ticket_quantity_nonnegative"),
        CheckConstraint("price >= 0", name="ck_ticket_price_nonnegative"),
    )


class Booking(Base):
    """
    Booking row.
    Domain controls payment status transitions;
    settlement writes them with conditional updates.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    ticket_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    ticket_title: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    vendor_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=_enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "quantity > 0",
            name="ck_booking_quantity_positive",
        ),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    # Minor currency units, as reported by the gateway.
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    vendor_email: Mapped[str] = mapped_column(String(255), nullable=False)
    ticket_title: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_id: Mapped[str] = mapped_column(String(36), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="paid")
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payment_transaction_id"),
    )
