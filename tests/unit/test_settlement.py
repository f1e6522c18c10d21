import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from conftest import make_booking, make_ticket
from triphub.application.settlement_service import SettlementCoordinator, SettlementOutcome
from triphub.domain.exceptions import BookingNotFoundError
from triphub.domain.state_machine import PaymentStatus
from triphub.infrastructure.db.models import Base, Booking, Payment, Ticket


def _payment_count(db) -> int:
    return db.execute(select(func.count()).select_from(Payment)).scalar_one()


def _reload(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


def test_successful_settlement_updates_everything(db, gateway):
    ticket = make_ticket(db, quantity=5, price=700)
    booking = make_booking(db, ticket, quantity=2)
    gateway.add_session("plink_1", booking.id, amount=140000, payment_id="pay_1")

    result = SettlementCoordinator(db, gateway).settle("plink_1")

    assert result.outcome == SettlementOutcome.SUCCESS
    assert result.transaction_id == "pay_1"
    assert result.payment_id is not None
    assert _reload(db, Booking, booking.id).payment_status == PaymentStatus.PAID
    assert _reload(db, Ticket, ticket.id).quantity == 3

    payment = db.execute(select(Payment)).scalar_one()
    assert payment.amount == 140000
    assert payment.currency == "INR"
    assert payment.customer_email == booking.user_email
    assert payment.vendor_email == ticket.vendor_email
    assert payment.ticket_title == ticket.title
    assert payment.booking_id == booking.id


def test_unpaid_session_mutates_nothing(db, gateway):
    ticket = make_ticket(db, quantity=5)
    booking = make_booking(db, ticket, quantity=1)
    gateway.add_session("plink_1", booking.id, status="created")

    result = SettlementCoordinator(db, gateway).settle("plink_1")

    assert result.outcome == SettlementOutcome.PAYMENT_INCOMPLETE
    assert _reload(db, Booking, booking.id).payment_status == PaymentStatus.UNPAID
    assert _reload(db, Ticket, ticket.id).quantity == 5
    assert _payment_count(db) == 0


def test_same_transaction_settled_twice_records_one_payment(db, gateway):
    ticket = make_ticket(db, quantity=5)
    booking = make_booking(db, ticket, quantity=1)
    gateway.add_session("plink_1", booking.id, payment_id="pay_1")
    coordinator = SettlementCoordinator(db, gateway)

    first = coordinator.settle("plink_1")
    second = coordinator.settle("plink_1")

    assert first.outcome == SettlementOutcome.SUCCESS
    assert second.outcome == SettlementOutcome.ALREADY_PROCESSED
    assert _payment_count(db) == 1
    assert _reload(db, Ticket, ticket.id).quantity == 4


def test_transaction_id_falls_back_to_session_id(db, gateway):
    ticket = make_ticket(db, quantity=5)
    booking = make_booking(db, ticket, quantity=1)
    gateway.add_session("plink_1", booking.id, payment_id=None)

    result = SettlementCoordinator(db, gateway).settle("plink_1")

    assert result.outcome == SettlementOutcome.SUCCESS
    assert db.execute(select(Payment.transaction_id)).scalar_one() == "plink_1"


def test_second_session_for_paid_booking_is_rejected(session_factory, gateway):
    setup = session_factory()
    ticket = make_ticket(setup, quantity=5)
    booking = make_booking(setup, ticket, quantity=1)
    booking_id, ticket_id = booking.id, ticket.id
    setup.close()

    # Two distinct checkout sessions for one booking, settled from two sessions.
    gateway.add_session("plink_a", booking_id, payment_id="pay_a")
    gateway.add_session("plink_b", booking_id, payment_id="pay_b")

    first_db, second_db = session_factory(), session_factory()
    outcomes = [
        SettlementCoordinator(first_db, gateway).settle("plink_a").outcome,
        SettlementCoordinator(second_db, gateway).settle("plink_b").outcome,
    ]
    first_db.close()
    second_db.close()

    assert outcomes.count(SettlementOutcome.SUCCESS) == 1
    assert outcomes.count(SettlementOutcome.BOOKING_ALREADY_PAID) == 1

    check = session_factory()
    assert check.get(Ticket, ticket_id).quantity == 4
    assert _payment_count(check) == 1
    check.close()


def test_insufficient_inventory_compensates_booking(db, gateway):
    ticket = make_ticket(db, quantity=2)
    booking = make_booking(db, ticket, quantity=3)
    gateway.add_session("plink_1", booking.id, payment_id="pay_1")

    result = SettlementCoordinator(db, gateway).settle("plink_1")

    assert result.outcome == SettlementOutcome.INSUFFICIENT_INVENTORY
    assert _reload(db, Ticket, ticket.id).quantity == 2
    assert _reload(db, Booking, booking.id).payment_status == PaymentStatus.PENDING
    assert _payment_count(db) == 0


def test_pending_booking_can_be_settled_after_restock(db, gateway):
    ticket = make_ticket(db, quantity=2)
    booking = make_booking(db, ticket, quantity=3)
    gateway.add_session("plink_1", booking.id, payment_id="pay_1")
    coordinator = SettlementCoordinator(db, gateway)

    assert coordinator.settle("plink_1").outcome == SettlementOutcome.INSUFFICIENT_INVENTORY

    restocked = _reload(db, Ticket, ticket.id)
    restocked.quantity = 5
    db.commit()

    assert coordinator.settle("plink_1").outcome == SettlementOutcome.SUCCESS
    assert _reload(db, Booking, booking.id).payment_status == PaymentStatus.PAID
    assert _reload(db, Ticket, ticket.id).quantity == 2
    assert _payment_count(db) == 1


def test_paid_booking_is_not_settled_again(db, gateway):
    ticket = make_ticket(db, quantity=5)
    booking = make_booking(db, ticket, quantity=1, payment_status=PaymentStatus.PAID)
    gateway.add_session("plink_1", booking.id, payment_id="pay_1")

    result = SettlementCoordinator(db, gateway).settle("plink_1")

    assert result.outcome == SettlementOutcome.BOOKING_ALREADY_PAID
    assert _reload(db, Ticket, ticket.id).quantity == 5
    assert _payment_count(db) == 0


def test_unknown_booking_raises_not_found(db, gateway):
    gateway.add_session("plink_1", "missing-booking", payment_id="pay_1")

    with pytest.raises(BookingNotFoundError):
        SettlementCoordinator(db, gateway).settle("plink_1")


def test_stock_never_negative_across_many_settlements(db, gateway):
    ticket = make_ticket(db, quantity=5)
    outcomes = []
    for index in range(6):
        booking = make_booking(db, ticket, quantity=2, user_email=f"user{index}@example.com")
        gateway.add_session(f"plink_{index}", booking.id, payment_id=f"pay_{index}")
        outcomes.append(SettlementCoordinator(db, gateway).settle(f"plink_{index}").outcome)

    assert outcomes.count(SettlementOutcome.SUCCESS) == 2
    assert outcomes.count(SettlementOutcome.INSUFFICIENT_INVENTORY) == 4
    assert _reload(db, Ticket, ticket.id).quantity == 1
    assert _payment_count(db) == 2


def test_saga_declares_compensation_for_booking_step(db, gateway):
    steps = SettlementCoordinator(db, gateway).steps()

    assert [step.name for step in steps] == [
        "mark_booking_paid",
        "reserve_inventory",
        "record_payment",
    ]
    assert steps[0].compensation is not None


@pytest.fixture()
def file_session_factory(tmp_path):
    # Separate connections per thread need a shared on-disk database.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'settlement.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.mark.parametrize("round_", range(5))
def test_concurrent_settlements_of_one_booking(file_session_factory, gateway, round_):
    setup = file_session_factory()
    ticket = make_ticket(setup, quantity=5)
    booking = make_booking(setup, ticket, quantity=2)
    booking_id, ticket_id = booking.id, ticket.id
    setup.close()

    gateway.add_session("plink_a", booking_id, payment_id="pay_a")
    gateway.add_session("plink_b", booking_id, payment_id="pay_b")

    barrier = threading.Barrier(2)
    outcomes, errors = [], []

    def settle(session_id):
        session = file_session_factory()
        try:
            barrier.wait()
            outcomes.append(SettlementCoordinator(session, gateway).settle(session_id).outcome)
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=settle, args=(sid,)) for sid in ("plink_a", "plink_b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(outcomes, key=lambda outcome: outcome.value) == sorted(
        [SettlementOutcome.SUCCESS, SettlementOutcome.BOOKING_ALREADY_PAID],
        key=lambda outcome: outcome.value,
    )

    check = file_session_factory()
    assert check.get(Ticket, ticket_id).quantity == 3
    assert check.get(Booking, booking_id).payment_status == PaymentStatus.PAID
    assert _payment_count(check) == 1
    check.close()
