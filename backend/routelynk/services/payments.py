"""Payment recording: ledger insert, booking -> paid, guarded stock decrement.

The three writes run in one database transaction. The gateway charge happens
before this service is called, so when the transaction cannot commit the
charge is refunded; if even the refund fails the caller gets a
``PartialFailure`` naming the charge as the step that stands.

A confirmed charge that fails any later check is refunded the same way. The
amount recorded is always the server-side booking total.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from routelynk.core.config import Settings
from routelynk.core.errors import (
    Forbidden,
    InsufficientStock,
    InvalidInput,
    NotFound,
    PartialFailure,
    PaymentGatewayError,
    RouteLynkError,
)
from routelynk.models.booking import Booking
from routelynk.models.payment import Payment
from routelynk.models.ticket import Ticket
from routelynk.schemas.payment import PaymentCreate
from routelynk.services.gateway import PaymentGateway, to_minor_units
from routelynk.services.guard import Identity

logger = logging.getLogger(__name__)


def create_payment_intent(gateway: PaymentGateway, settings: Settings, price: float) -> str:
    amount = to_minor_units(price)
    if amount <= 0:
        raise InvalidInput("Price must be positive")
    return gateway.create_intent(amount, settings.payment_currency)


def _payable_statuses(settings: Settings) -> tuple[str, ...]:
    if settings.require_acceptance_before_payment:
        return ("accepted",)
    return ("pending", "accepted")


def _result(db: Session, payment: Payment, replayed: bool) -> dict:
    booking = db.get(Booking, payment.booking_id) if payment.booking_id is not None else None
    ticket = db.get(Ticket, payment.ticket_id) if payment.ticket_id is not None else None
    return {"payment": payment, "booking": booking, "ticket": ticket, "replayed": replayed}


def _replay(db: Session, user: Identity, existing: Payment) -> dict:
    if existing.user_email != user.email:
        raise Forbidden("Transaction belongs to another user")
    logger.info("Payment %s replayed, returning stored result", existing.transaction_id)
    return _result(db, existing, replayed=True)


def _compensate(gateway: PaymentGateway, transaction_id: str, reason: str):
    """Refund a charge whose ledger transaction was rolled back."""
    try:
        gateway.refund(transaction_id)
    except PaymentGatewayError:
        logger.critical("Charge %s could not be recorded (%s) and refund failed", transaction_id, reason)
        raise PartialFailure(
            f"Payment was charged but could not be recorded ({reason}); refund failed",
            committed=["charge"],
        )
    logger.warning("Charge %s refunded: %s", transaction_id, reason)


def _expected_total(ticket: Ticket, booking: Booking) -> Decimal:
    return Decimal(str(ticket.price)) * booking.quantity


def _reject_charged(gateway: PaymentGateway, transaction_id: str, error: RouteLynkError):
    """A confirmed charge failed validation: refund it, then surface the error."""
    _compensate(gateway, transaction_id, error.message)
    raise error


def record_payment(db: Session, gateway: PaymentGateway, settings: Settings, user: Identity, data: PaymentCreate) -> dict:
    existing = db.query(Payment).filter(Payment.transaction_id == data.transaction_id).first()
    if existing:
        return _replay(db, user, existing)

    # The charge may belong to someone else; never refund on these
    booking = db.get(Booking, data.booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.user_email != user.email:
        raise Forbidden("Not your booking")
    if settings.verify_payments and not gateway.charge_succeeded(data.transaction_id, to_minor_units(data.price)):
        raise InvalidInput("Payment was not completed")

    # From here on the caller has paid, so every rejection refunds
    if booking.ticket_id != data.ticket_id:
        _reject_charged(gateway, data.transaction_id, InvalidInput("Ticket does not match booking"))
    if booking.quantity != data.quantity:
        _reject_charged(gateway, data.transaction_id, InvalidInput("Quantity does not match booking"))
    payable = _payable_statuses(settings)
    if booking.status not in payable:
        _reject_charged(gateway, data.transaction_id, InvalidInput(f"Booking is {booking.status} and cannot be paid"))
    ticket = db.get(Ticket, data.ticket_id)
    if not ticket:
        _reject_charged(gateway, data.transaction_id, NotFound("Ticket not found"))
    total = _expected_total(ticket, booking)
    if to_minor_units(data.price) != to_minor_units(total):
        _reject_charged(gateway, data.transaction_id, InvalidInput("Payment amount does not match booking total"))

    vendor_email = booking.vendor_email
    try:
        payment = Payment(
            booking_id=booking.id,
            ticket_id=ticket.id,
            user_email=user.email,
            vendor_email=vendor_email,
            price=total,
            quantity=data.quantity,
            transaction_id=data.transaction_id,
            date=datetime.now(timezone.utc),
        )
        db.add(payment)
        db.flush()

        marked = db.execute(
            update(Booking)
            .where(Booking.id == data.booking_id, Booking.status.in_(payable))
            .values(status="paid", transaction_id=data.transaction_id)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            raise InvalidInput("Booking changed state before payment was recorded")

        decremented = db.execute(
            update(Ticket)
            .where(Ticket.id == data.ticket_id, Ticket.quantity >= data.quantity)
            .values(quantity=Ticket.quantity - data.quantity)
            .execution_options(synchronize_session=False)
        )
        if decremented.rowcount != 1:
            raise InsufficientStock("Not enough tickets left to fulfil this payment")

        db.commit()
    except IntegrityError:
        db.rollback()
        # Same transaction recorded concurrently; the other request owns it
        existing = db.query(Payment).filter(Payment.transaction_id == data.transaction_id).first()
        if existing:
            return _replay(db, user, existing)
        _compensate(gateway, data.transaction_id, "store constraint violation")
        raise InvalidInput("Payment could not be recorded; charge refunded")
    except RouteLynkError as e:
        db.rollback()
        _compensate(gateway, data.transaction_id, e.message)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Payment %s failed in the store", data.transaction_id)
        _compensate(gateway, data.transaction_id, type(e).__name__)
        raise

    logger.info(
        "Payment %s recorded: booking %s, ticket %s, %d unit(s) for %s",
        data.transaction_id, data.booking_id, data.ticket_id, data.quantity, vendor_email,
    )
    return _result(db, payment, replayed=False)


def list_for_user(db: Session, email: str) -> list[Payment]:
    return db.query(Payment).filter(Payment.user_email == email).order_by(Payment.date.desc(), Payment.id.desc()).all()
