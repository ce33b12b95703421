"""Booking lifecycle: pending -> accepted | rejected, then -> paid via payments.

Stock is only checked here (advisory); it is decremented, guarded, when the
payment is recorded.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from routelynk.core.errors import Expired, Forbidden, InsufficientStock, InvalidInput, NotFound
from routelynk.models.booking import Booking
from routelynk.models.ticket import Ticket
from routelynk.services.guard import Identity

logger = logging.getLogger(__name__)


def create_booking(db: Session, user: Identity, ticket_id: int, quantity: int, today: Optional[date] = None) -> Booking:
    if quantity < 1:
        raise InvalidInput("Quantity must be at least 1")
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFound("Ticket not found")
    if ticket.status != "approved":
        raise InvalidInput("Ticket is not available for booking")
    if quantity > ticket.quantity:
        raise InsufficientStock("Not enough tickets available")
    # Date-only comparison: a ticket departing today can still be booked
    if ticket.departure_date < (today or date.today()):
        raise Expired("Ticket has already departed")
    booking = Booking(
        ticket_id=ticket.id,
        user_email=user.email,
        vendor_email=ticket.vendor_email,
        quantity=quantity,
        status="pending",
        booked_at=datetime.now(timezone.utc),
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    return booking


def set_booking_status(db: Session, vendor: Identity, booking_id: int, status: str) -> Booking:
    """Vendor decision on a pending booking (compare-and-set on ``pending``)."""
    if status not in ("accepted", "rejected"):
        raise InvalidInput("Invalid status")
    booking = get_booking(db, booking_id)
    if booking.vendor_email != vendor.email:
        raise Forbidden("Not your booking request")
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == "pending")
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(booking)
        raise InvalidInput(f"Booking is already {booking.status}")
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s %s by %s", booking_id, status, vendor.email)
    return booking


def _with_tickets(db: Session, bookings: list[Booking]) -> list[dict]:
    ticket_ids = {b.ticket_id for b in bookings if b.ticket_id is not None}
    tickets_map: dict[int, Ticket] = {}
    if ticket_ids:
        tickets_map = {t.id: t for t in db.query(Ticket).filter(Ticket.id.in_(ticket_ids)).all()}
    return [{"booking": b, "ticket": tickets_map.get(b.ticket_id)} for b in bookings]


def list_for_user(db: Session, email: str) -> list[dict]:
    bookings = db.query(Booking).filter(Booking.user_email == email).order_by(Booking.booked_at.desc(), Booking.id.desc()).all()
    return _with_tickets(db, bookings)


def list_for_vendor(db: Session, email: str) -> list[dict]:
    bookings = db.query(Booking).filter(Booking.vendor_email == email).order_by(Booking.booked_at.desc(), Booking.id.desc()).all()
    return _with_tickets(db, bookings)
