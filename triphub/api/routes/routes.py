import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from triphub.api.dependencies import (
    get_db,
    get_payment_gateway,
    get_current_identity,
    get_optional_identity,
    require_admin,
    require_user,
    require_vendor,
)
from triphub.api.schemas.schemas import (
    AdvertiseRequest,
    BookingDecisionRequest,
    BookingRequest,
    BookingResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    FraudCascadeResponse,
    PaymentResponse,
    RoleResponse,
    SettlementResponse,
    TicketCreate,
    TicketResponse,
    TicketUpdate,
    UserRegisterRequest,
    UserResponse,
    UserRoleRequest,
    VendorApplyRequest,
    VendorFraudRequest,
    VendorResponse,
    VendorStatusRequest,
)
from triphub.application.booking_service import BookingService
from triphub.application.checkout_service import CheckoutService
from triphub.application.settlement_service import (
    SettlementCoordinator,
    SettlementOutcome,
)
from triphub.application.ticket_service import TicketService
from triphub.application.vendor_service import VendorService
from triphub.domain.authorization import Identity, Role
from triphub.domain.exceptions import UserNotFoundError, VendorNotFoundError
from triphub.domain.state_machine import BookingStatus, TicketStatus, VendorStatus
from triphub.infrastructure.repositories.booking_repository import BookingRepository
from triphub.infrastructure.repositories.payment_repository import PaymentRepository
from triphub.infrastructure.repositories.ticket_repository import TicketRepository
from triphub.infrastructure.repositories.user_repository import UserRepository
from triphub.infrastructure.repositories.vendor_repository import VendorRepository


router = APIRouter()
logger = logging.getLogger(__name__)

SETTLEMENT_HTTP_STATUS = {
    SettlementOutcome.SUCCESS: status.HTTP_200_OK,
    SettlementOutcome.ALREADY_PROCESSED: status.HTTP_200_OK,
    SettlementOutcome.PAYMENT_INCOMPLETE: status.HTTP_400_BAD_REQUEST,
    SettlementOutcome.INSUFFICIENT_INVENTORY: status.HTTP_409_CONFLICT,
    SettlementOutcome.BOOKING_ALREADY_PAID: status.HTTP_409_CONFLICT,
}


@router.get("/")
def root():
    return {"message": "Hello World, time for a trip!"}


@router.get("/health")
def health():
    return {"message": "Trip Hub is running"}


# -----------------------------
# Tickets
# -----------------------------
@router.post("/tickets", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    request: TicketCreate,
    identity: Identity = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    return TicketService(db).create_ticket(identity, request.model_dump())


@router.get("/tickets", response_model=list[TicketResponse])
def list_tickets(
    email: str | None = None,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    # Hidden tickets are listed only for their owning vendor or an admin.
    sees_hidden = identity is not None and (
        identity.role == Role.ADMIN or (email is not None and identity.email == email)
    )
    return TicketRepository(db).list_tickets(
        vendor_email=email,
        status=status_filter,
        visible_only=not sees_hidden,
    )


@router.get("/tickets/latest", response_model=list[TicketResponse])
def latest_tickets(db: Session = Depends(get_db)):
    return TicketRepository(db).list_latest(limit=6)


@router.get("/tickets/advertised", response_model=list[TicketResponse])
def advertised_tickets(db: Session = Depends(get_db)):
    return TicketRepository(db).list_advertised()


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: str, db: Session = Depends(get_db)):
    return TicketService(db).get_ticket(ticket_id)


@router.patch("/tickets/advertise/{ticket_id}", response_model=TicketResponse)
def advertise_ticket(
    ticket_id: str,
    request: AdvertiseRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return TicketService(db).set_advertised(ticket_id, request.is_advertised)


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
def update_ticket(
    ticket_id: str,
    request: TicketUpdate,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    fields = request.model_dump(exclude_unset=True)
    return TicketService(db).update_ticket(identity, ticket_id, fields)


@router.delete("/tickets/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket(
    ticket_id: str,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    TicketService(db).delete_ticket(identity, ticket_id)


# -----------------------------
# Bookings
# -----------------------------
@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingRequest,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).create_booking(
        user_email=identity.email,
        ticket_id=request.ticket_id,
        quantity=request.quantity,
    )


@router.get("/bookings", response_model=list[BookingResponse])
def list_bookings(
    booking_status: BookingStatus | None = None,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    return BookingRepository(db).list_bookings(
        user_email=identity.email,
        booking_status=booking_status,
    )


@router.get("/bookings/vendor", response_model=list[BookingResponse])
def list_vendor_bookings(
    booking_status: BookingStatus | None = None,
    identity: Identity = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    return BookingRepository(db).list_bookings(
        vendor_email=identity.email,
        booking_status=booking_status,
    )


@router.patch("/bookings/{booking_id}", response_model=BookingResponse)
def decide_booking(
    booking_id: str,
    request: BookingDecisionRequest,
    identity: Identity = Depends(require_vendor),
    db: Session = Depends(get_db),
):
    return BookingService(db).decide(
        vendor_email=identity.email,
        booking_id=booking_id,
        new_status=BookingStatus(request.booking_status),
    )


# -----------------------------
# Payments
# -----------------------------
@router.post("/payment-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    request: CheckoutSessionRequest,
    identity: Identity = Depends(require_user),
    gateway=Depends(get_payment_gateway),
    db: Session = Depends(get_db),
):
    session = CheckoutService(db, gateway).create_session(
        booking_id=request.booking_id,
        customer_email=identity.email,
    )
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


@router.get("/payment-success", response_model=SettlementResponse)
def payment_success(
    session_id: str,
    gateway=Depends(get_payment_gateway),
    db: Session = Depends(get_db),
):
    result = SettlementCoordinator(db, gateway).settle(session_id)
    body = SettlementResponse(
        outcome=result.outcome.value,
        booking_id=result.booking_id,
        transaction_id=result.transaction_id,
        payment_id=result.payment_id,
    )
    return JSONResponse(
        status_code=SETTLEMENT_HTTP_STATUS[result.outcome],
        content=body.model_dump(),
    )


@router.get("/payments", response_model=list[PaymentResponse])
def list_payments(
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    customer_email = None if identity.role == Role.ADMIN else identity.email
    return PaymentRepository(db).list_payments(customer_email=customer_email)


# -----------------------------
# Users
# -----------------------------
@router.post("/users", response_model=UserResponse)
def register_user(
    request: UserRegisterRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    user, created = UserRepository(db).get_or_create(
        email=identity.email,
        name=request.name,
        photo=request.photo,
    )
    db.flush()
    if created:
        logger.info("Registered user %s", identity.email)
    return user


@router.get("/users/role", response_model=RoleResponse)
def current_role(identity: Identity = Depends(get_current_identity)):
    return RoleResponse(email=identity.email, role=identity.role)


@router.get("/users", response_model=list[UserResponse])
def list_users(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return UserRepository(db).list_users()


@router.patch("/users/{user_id}/role", response_model=UserResponse)
def change_user_role(
    user_id: str,
    request: UserRoleRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    repository = UserRepository(db)
    user = repository.get_by_id(user_id)
    if not user:
        raise UserNotFoundError("User not found")

    user.role = request.role
    db.flush()
    logger.info("User %s role set to %s by %s", user.email, request.role.value, identity.email)
    return user


# -----------------------------
# Vendors
# -----------------------------
@router.post("/vendors", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
def apply_for_vendor(
    request: VendorApplyRequest,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    return VendorService(db).apply(
        email=identity.email,
        name=request.name,
        image=request.image,
    )


@router.get("/vendors", response_model=list[VendorResponse])
def list_vendors(
    status_filter: VendorStatus | None = Query(default=None, alias="status"),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return VendorRepository(db).list_vendors(status=status_filter)


@router.get("/vendors/me", response_model=VendorResponse)
def my_vendor_application(
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    vendor = VendorRepository(db).get_by_email(identity.email)
    if not vendor:
        raise VendorNotFoundError("Vendor not found")
    return vendor


@router.patch("/vendors/fraud", response_model=FraudCascadeResponse)
def flag_vendor_fraud(
    request: VendorFraudRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = VendorService(db).flag_fraud(request.email)
    return FraudCascadeResponse(
        vendor=result.vendor.as_dict(),
        user=result.user.as_dict(),
        tickets=result.tickets.as_dict(),
    )


@router.patch("/vendors/{vendor_id}/status", response_model=VendorResponse)
def change_vendor_status(
    vendor_id: str,
    request: VendorStatusRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return VendorService(db).set_status(vendor_id, VendorStatus(request.status))
