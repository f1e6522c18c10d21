from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from triphub.domain.authorization import Role
from triphub.domain.state_machine import (
    BookingStatus,
    PaymentStatus,
    TicketStatus,
    VendorStatus,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -----------------------------
# Tickets
# -----------------------------
class TicketCreate(BaseModel):
    title: str = Field(min_length=1)
    from_location: str | None = None
    to_location: str | None = None
    transport_type: str | None = None
    image: str | None = None
    perks: str | None = None
    price: int = Field(ge=0)
    quantity: int = Field(ge=0)
    departure_date: str | None = None
    departure_time: str | None = None


class TicketUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    status: TicketStatus | None = None
    price: int | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
    departure_date: str | None = None
    departure_time: str | None = None


class AdvertiseRequest(BaseModel):
    is_advertised: bool


class TicketResponse(ORMModel):
    id: str
    title: str
    vendor_id: str | None
    vendor_name: str | None
    vendor_email: str
    from_location: str | None
    to_location: str | None
    transport_type: str | None
    image: str | None
    perks: str | None
    status: TicketStatus
    is_visible: bool
    is_advertised: bool
    price: int
    quantity: int
    departure_date: str | None
    departure_time: str | None
    created_at: datetime


# -----------------------------
# Bookings
# -----------------------------
class BookingRequest(BaseModel):
    ticket_id: str
    quantity: int = Field(gt=0)


class BookingDecisionRequest(BaseModel):
    booking_status: Literal["accepted", "rejected"]


class BookingResponse(ORMModel):
    id: str
    ticket_id: str
    ticket_title: str
    user_email: str
    vendor_email: str
    quantity: int
    unit_price: int
    booking_status: BookingStatus
    payment_status: PaymentStatus
    created_at: datetime


# -----------------------------
# Payments
# -----------------------------
class CheckoutSessionRequest(BaseModel):
    booking_id: str


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: str


class SettlementResponse(BaseModel):
    outcome: str
    booking_id: str | None = None
    transaction_id: str | None = None
    payment_id: str | None = None


class PaymentResponse(ORMModel):
    id: str
    amount: int
    currency: str
    customer_email: str
    vendor_email: str
    ticket_title: str
    booking_id: str
    transaction_id: str
    payment_status: str
    paid_at: datetime


# -----------------------------
# Users & vendors
# -----------------------------
class UserRegisterRequest(BaseModel):
    name: str | None = None
    photo: str | None = None


class UserRoleRequest(BaseModel):
    role: Role


class UserResponse(ORMModel):
    id: str
    email: str
    name: str | None
    photo: str | None
    role: Role
    created_at: datetime


class RoleResponse(BaseModel):
    email: str
    role: Role


class VendorApplyRequest(BaseModel):
    name: str = Field(min_length=1)
    image: str | None = None


class VendorStatusRequest(BaseModel):
    status: Literal["approved", "rejected", "pending"]


class VendorFraudRequest(BaseModel):
    email: str


class VendorResponse(ORMModel):
    id: str
    name: str
    image: str | None
    email: str
    status: VendorStatus
    created_at: datetime
    updated_at: datetime


class UpdateSummaryResponse(BaseModel):
    matched: int
    modified: int


class FraudCascadeResponse(BaseModel):
    vendor: UpdateSummaryResponse
    user: UpdateSummaryResponse
    tickets: UpdateSummaryResponse
